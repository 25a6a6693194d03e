"""
Apply one provider stock webhook (created / updated / deleted) to the store.

Events converge: a `created` for a vehicle we already hold behaves as an
`updated`, and an `updated` for a vehicle we don't hold behaves as a
`created`. Overridden vehicles are never touched. Each call writes exactly
one webhook row to sync_logs.
"""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from stocksync.config.settings import Settings, get_settings
from stocksync.database.models import Vehicle
from stocksync.database.store import InventoryStore
from stocksync.services.errors import ValidationError
from stocksync.services.provider_client import ProviderApiClient, create_provider_client
from stocksync.services.sync_logger import WEBHOOK, SyncLogger
from stocksync.services.vehicle_transformer import MappedVehicle, transform, validate_mapped

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"
EVENT_TYPES = (CREATED, UPDATED, DELETED)

# Wire names used in the webhook body
PROVIDER_EVENT_TYPES = {
    "vehicle.created": CREATED,
    "vehicle.updated": UPDATED,
    "vehicle.deleted": DELETED,
}


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """Check a hex HMAC-SHA256 of the raw body. An optional "sha256=" prefix is accepted."""
    if not signature or not secret:
        return False
    received = signature.strip()
    if received.startswith("sha256="):
        received = received[len("sha256="):]
    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(received.lower(), expected)


@dataclass
class WebhookOutcome:
    status: str
    added: int = 0
    updated: int = 0
    unavailable: int = 0


class WebhookIngestor:

    def __init__(
        self,
        store: InventoryStore,
        client: ProviderApiClient,
        sync_logger: SyncLogger,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.client = client
        self.sync_logger = sync_logger
        self._clock = clock

    def handle(self, event_type: str, vehicle_id: str, advertiser_id: str) -> str:
        """Apply the event and return its status: success, skipped or not_found."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown webhook event type: {event_type}")

        started = time.monotonic()
        logger.info("Handling vehicle.%s for %s", event_type, vehicle_id)
        try:
            if event_type == CREATED:
                outcome = self._created(vehicle_id, advertiser_id)
            elif event_type == UPDATED:
                outcome = self._updated(vehicle_id, advertiser_id)
            else:
                outcome = self._deleted(vehicle_id)
        except Exception as exc:
            logger.exception("Webhook vehicle.%s failed for %s", event_type, vehicle_id)
            self.sync_logger.record(
                WEBHOOK, "failed",
                duration_ms=self._elapsed_ms(started),
                errors=[str(exc) or type(exc).__name__],
                event_type=event_type,
                provider_id=vehicle_id,
            )
            raise

        self.sync_logger.record(
            WEBHOOK, outcome.status,
            cars_added=outcome.added,
            cars_updated=outcome.updated,
            cars_marked_unavailable=outcome.unavailable,
            duration_ms=self._elapsed_ms(started),
            event_type=event_type,
            provider_id=vehicle_id,
        )
        return outcome.status

    # --- Event paths ---

    def _created(self, vehicle_id: str, advertiser_id: str) -> WebhookOutcome:
        existing = self.store.find_by_provider_id(vehicle_id)
        if existing is not None:
            return self._update_existing(existing, vehicle_id, advertiser_id)

        mapped = self._fetch_mapped(vehicle_id, advertiser_id)
        if mapped.provider_id != vehicle_id:
            existing = self.store.find_by_provider_id(mapped.provider_id)
            if existing is not None:
                return self._write_update(existing, mapped)

        self.store.insert(mapped, self._clock())
        logger.info("Inserted new vehicle: %s", mapped.provider_id)
        return WebhookOutcome("success", added=1)

    def _updated(self, vehicle_id: str, advertiser_id: str) -> WebhookOutcome:
        existing = self.store.find_by_provider_id(vehicle_id)
        if existing is None:
            logger.info("Vehicle %s not found locally, treating update as create", vehicle_id)
            return self._created(vehicle_id, advertiser_id)
        return self._update_existing(existing, vehicle_id, advertiser_id)

    def _deleted(self, vehicle_id: str) -> WebhookOutcome:
        existing = self.store.find_by_provider_id(vehicle_id)
        if existing is None:
            logger.info("Vehicle %s not found locally, nothing to remove", vehicle_id)
            return WebhookOutcome("not_found")
        if existing.override_active:
            logger.info("Skipped removal of %s - manual override enabled", vehicle_id)
            return WebhookOutcome("skipped")

        self.store.mark_unavailable([existing.id])
        logger.info("Marked vehicle as unavailable: %s", vehicle_id)
        return WebhookOutcome("success", unavailable=1)

    # --- Helpers ---

    def _update_existing(self, existing: Vehicle, vehicle_id: str, advertiser_id: str) -> WebhookOutcome:
        if existing.override_active:
            logger.info("Skipped update for %s - manual override enabled", vehicle_id)
            return WebhookOutcome("skipped")
        return self._write_update(existing, self._fetch_mapped(vehicle_id, advertiser_id))

    def _write_update(self, existing: Vehicle, mapped: MappedVehicle) -> WebhookOutcome:
        if existing.override_active:
            logger.info("Skipped update for %s - manual override enabled", mapped.provider_id)
            return WebhookOutcome("skipped")
        self.store.update(existing, mapped, self._clock())
        logger.info("Updated vehicle: %s", mapped.provider_id)
        return WebhookOutcome("success", updated=1)

    def _fetch_mapped(self, vehicle_id: str, advertiser_id: str) -> MappedVehicle:
        raw = self.client.get_vehicle(vehicle_id, advertiser_id)
        mapped = transform(raw, advertiser_id)
        validation = validate_mapped(mapped)
        if not validation.valid:
            raise ValidationError(mapped.provider_id, validation.errors)
        return mapped

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)


def handle_webhook_event(
    db: Session,
    event_type: str,
    vehicle_id: str,
    advertiser_id: str,
    settings: Settings | None = None,
) -> str:
    """Build an ingestor from settings and apply one event on `db`."""
    settings = settings or get_settings()
    sync_logger = SyncLogger(db)
    try:
        client = create_provider_client(settings)
    except ValueError as exc:
        logger.error("Cannot handle webhook for %s: %s", vehicle_id, exc)
        sync_logger.record(WEBHOOK, "failed", errors=[str(exc)], event_type=event_type, provider_id=vehicle_id)
        raise

    with client:
        ingestor = WebhookIngestor(InventoryStore(db), client, sync_logger)
        return ingestor.handle(event_type, vehicle_id, advertiser_id)
