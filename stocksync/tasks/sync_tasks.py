"""Celery task for the scheduled full stock sync."""

import logging

from stocksync.celery_app import app
from stocksync.database.db import SessionLocal
from stocksync.services.errors import ProviderConnectionError, RateLimitError, ServiceUnavailableError
from stocksync.services.reconciliation import run_stock_sync

logger = logging.getLogger(__name__)

# Worth another attempt after the retry delay; anything else waits for the next beat
TRANSIENT_ERRORS = (ProviderConnectionError, RateLimitError, ServiceUnavailableError)


@app.task(bind=True, max_retries=1, default_retry_delay=300)
def run_scheduled_sync(self):
    """Run one full stock sync on its own session.

    Runs on beat schedule (every sync_interval_minutes). The run's outcome is
    always written to sync_logs by the engine; this returns the result dict.
    """
    db = SessionLocal()
    try:
        result = run_stock_sync(db)
        logger.info("Scheduled sync finished: %s", result.status)
        return result.to_dict()
    except TRANSIENT_ERRORS as exc:
        logger.warning("Scheduled sync hit a transient provider error, retrying: %s", exc)
        raise self.retry(exc=exc)
    except Exception:
        logger.exception("Scheduled sync task failed")
        raise
    finally:
        db.close()
