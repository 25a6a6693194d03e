"""
Full stock reconciliation: provider snapshot vs. local synced vehicles.

    fetch snapshot -> transform + validate each vehicle -> insert / update /
    skip (override) -> soft-remove the synced vehicles the feed no longer
    lists -> write one full_sync log row

Per-vehicle problems (validation, a single failed write, a malformed record)
are collected into the result and the run carries on. Anything else aborts
the run, is logged as failed, and is re-raised.
"""

import logging
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Callable

from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

from stocksync.config.settings import Settings, get_settings
from stocksync.database.models import Vehicle
from stocksync.database.store import InventoryStore, has_changes
from stocksync.services.errors import StoreError, ValidationError
from stocksync.services.provider_client import create_provider_client
from stocksync.services.stock_fetcher import StockFetcher, StockSnapshot
from stocksync.services.sync_logger import FULL_SYNC, SyncLogger
from stocksync.services.vehicle_transformer import transform, validate_mapped

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    success: bool = False
    status: str = "failed"
    cars_added: int = 0
    cars_updated: int = 0
    cars_unchanged: int = 0
    cars_skipped: int = 0
    cars_marked_unavailable: int = 0
    duration_ms: int = 0
    errors: list[str] = field(default_factory=list)
    message: str = ""

    @property
    def writes(self) -> int:
        return self.cars_added + self.cars_updated + self.cars_marked_unavailable

    def finish(self, duration_ms: int) -> None:
        self.duration_ms = duration_ms
        self.success = not self.errors
        if self.success:
            self.status = "success"
        elif self.writes > 0:
            self.status = "partial"
        else:
            self.status = "failed"
        self.message = (
            f"Sync completed: {self.cars_added} added, {self.cars_updated} updated, "
            f"{self.cars_marked_unavailable} marked unavailable"
        )

    def to_dict(self) -> dict:
        return asdict(self)


class ReconciliationEngine:

    def __init__(
        self,
        store: InventoryStore,
        fetcher: StockFetcher,
        sync_logger: SyncLogger,
        advertiser_id: str,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.fetcher = fetcher
        self.sync_logger = sync_logger
        self.advertiser_id = advertiser_id
        self._clock = clock

    def run_full_sync(self) -> SyncResult:
        started = time.monotonic()
        result = SyncResult()
        logger.info("Full stock sync started for advertiser %s", self.advertiser_id)

        try:
            snapshot = self.fetcher.fetch_snapshot(self.advertiser_id)
            self._reconcile(snapshot, result)
        except Exception as exc:
            result.errors.append(str(exc) or type(exc).__name__)
            result.finish(self._elapsed_ms(started))
            result.status = "failed"
            result.message = f"Sync failed: {exc}"
            logger.exception("Full stock sync failed")
            self._log(result)
            raise

        result.finish(self._elapsed_ms(started))
        logger.info("%s (%dms, %d errors)", result.message, result.duration_ms, len(result.errors))
        self._log(result)
        return result

    def _reconcile(self, snapshot: StockSnapshot, result: SyncResult) -> None:
        existing: dict[str, Vehicle] = {v.provider_id: v for v in self.store.synced_vehicles()}
        seen: set[str] = set()
        synced_at = self._clock()

        for index, raw in enumerate(snapshot.vehicles):
            try:
                self._apply(raw, index, existing, seen, synced_at, result)
            except (ValidationError, StoreError) as exc:
                logger.warning("Vehicle skipped: %s", exc)
                result.errors.append(str(exc))
            except SchemaError as exc:
                logger.warning("Malformed provider record at index %d: %s", index, exc)
                result.errors.append(f"Malformed record at index {index}: {exc.error_count()} field error(s)")

        if not snapshot.complete:
            result.errors.append(f"{snapshot.error}; availability left unchanged")
            logger.warning("Partial stock snapshot, not marking missing vehicles unavailable")
            return

        missing = [
            v.id for pid, v in existing.items()
            if pid not in seen and not v.override_active and v.is_available
        ]
        if missing:
            try:
                result.cars_marked_unavailable = self.store.mark_unavailable(missing)
                logger.info("Marked %d vehicles unavailable", result.cars_marked_unavailable)
            except StoreError as exc:
                result.errors.append(str(exc))

    def _apply(self, raw: dict, index: int, existing: dict[str, Vehicle], seen: set[str],
               synced_at: datetime, result: SyncResult) -> None:
        mapped = transform(raw, self.advertiser_id, index)
        seen.add(mapped.provider_id)

        validation = validate_mapped(mapped)
        if not validation.valid:
            raise ValidationError(mapped.provider_id, validation.errors)

        vehicle = existing.get(mapped.provider_id)
        if vehicle is None:
            existing[mapped.provider_id] = self.store.insert(mapped, synced_at)
            result.cars_added += 1
            logger.info("Added: %s %s (%s)", mapped.make, mapped.model, mapped.provider_id)
        elif vehicle.override_active:
            result.cars_skipped += 1
            logger.info("Skipping %s - manual override enabled", mapped.provider_id)
        elif not has_changes(vehicle, mapped):
            result.cars_unchanged += 1
        else:
            self.store.update(vehicle, mapped, synced_at)
            result.cars_updated += 1
            logger.info("Updated: %s %s (%s)", mapped.make, mapped.model, mapped.provider_id)

    def _log(self, result: SyncResult) -> None:
        self.sync_logger.record(
            FULL_SYNC,
            result.status,
            cars_added=result.cars_added,
            cars_updated=result.cars_updated,
            cars_marked_unavailable=result.cars_marked_unavailable,
            duration_ms=result.duration_ms,
            errors=result.errors,
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)


def run_stock_sync(db: Session, settings: Settings | None = None) -> SyncResult:
    """Build the engine from settings and run one full sync on `db`."""
    settings = settings or get_settings()
    sync_logger = SyncLogger(db)
    try:
        client = create_provider_client(settings)
    except ValueError as exc:
        logger.error("Cannot start stock sync: %s", exc)
        sync_logger.record(FULL_SYNC, "failed", errors=[str(exc)])
        raise

    with client:
        engine = ReconciliationEngine(
            InventoryStore(db),
            StockFetcher(client, page_size=settings.provider_page_size),
            sync_logger,
            advertiser_id=settings.provider_advertiser_id,
        )
        return engine.run_full_sync()
