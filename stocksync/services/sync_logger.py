"""Persist one sync_logs row per full sync or webhook event."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stocksync.database.models import SyncLog

logger = logging.getLogger(__name__)

FULL_SYNC = "full_sync"
WEBHOOK = "webhook"


class SyncLogger:

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        sync_type: str,
        status: str,
        cars_added: int = 0,
        cars_updated: int = 0,
        cars_marked_unavailable: int = 0,
        duration_ms: int = 0,
        errors: list[str] | None = None,
        event_type: str | None = None,
        provider_id: str | None = None,
    ) -> SyncLog | None:
        """Insert a log row. A failure here is logged, never raised over the run's own outcome."""
        entry = SyncLog(
            sync_type=sync_type,
            status=status,
            event_type=event_type,
            provider_id=provider_id,
            cars_added=cars_added,
            cars_updated=cars_updated,
            cars_marked_unavailable=cars_marked_unavailable,
            duration_ms=duration_ms,
            error_message="; ".join(errors) if errors else None,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to write %s sync log (status=%s)", sync_type, status)
            return None
        logger.info(
            "Sync log written: %s %s (+%d ~%d -%d, %dms)",
            sync_type, status, cars_added, cars_updated, cars_marked_unavailable, duration_ms,
        )
        return entry

    def recent(self, limit: int = 50) -> list[SyncLog]:
        return self.db.query(SyncLog).order_by(SyncLog.created_at.desc(), SyncLog.id.desc()).limit(limit).all()
