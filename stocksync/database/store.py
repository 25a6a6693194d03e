"""Inventory store used by the sync engine.

Thin wrapper over a SQLAlchemy session. Each write commits on its own so one
failing record never takes the rest of a run down with it; failures are
rolled back and re-raised as StoreError.
"""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stocksync.database.models import Vehicle
from stocksync.services.errors import StoreError
from stocksync.services.vehicle_transformer import MappedVehicle

logger = logging.getLogger(__name__)

# Fields compared to decide whether a provider record actually changed
CONTENT_FIELDS = (
    "provider_advertiser_id", "make", "model", "year", "price", "mileage",
    "fuel_type", "transmission", "category", "colour", "engine", "style",
    "doors", "road_tax", "registration", "vin", "description", "cover_image_url",
    "gallery_images", "provider_data",
)


def has_changes(vehicle: Vehicle, mapped: MappedVehicle) -> bool:
    """True if writing `mapped` would change the stored record."""
    if not vehicle.is_available:
        return True
    fields = mapped.record_fields()
    return any(getattr(vehicle, name) != fields[name] for name in CONTENT_FIELDS)


class InventoryStore:
    """Reads and writes provider-synced vehicles."""

    def __init__(self, db: Session):
        self.db = db

    def synced_vehicles(self) -> list[Vehicle]:
        return self.db.query(Vehicle).filter(Vehicle.synced_from_provider == True).all()

    def find_by_provider_id(self, provider_id: str) -> Vehicle | None:
        return (
            self.db.query(Vehicle)
            .filter(Vehicle.provider_id == provider_id, Vehicle.synced_from_provider == True)
            .first()
        )

    def insert(self, mapped: MappedVehicle, synced_at: datetime) -> Vehicle:
        vehicle = Vehicle(
            **mapped.record_fields(),
            synced_from_provider=True,
            override_active=False,
            is_available=True,
            last_synced_at=synced_at,
        )
        self.db.add(vehicle)
        self._commit(f"Insert failed for {mapped.provider_id}", mapped.provider_id)
        self.db.refresh(vehicle)
        return vehicle

    def update(self, vehicle: Vehicle, mapped: MappedVehicle, synced_at: datetime) -> Vehicle:
        if vehicle.override_active:
            raise StoreError(f"Refusing to update overridden vehicle {vehicle.provider_id}", vehicle.provider_id)
        for name, value in mapped.record_fields().items():
            setattr(vehicle, name, value)
        vehicle.is_available = True
        vehicle.last_synced_at = synced_at
        self._commit(f"Update failed for {mapped.provider_id}", mapped.provider_id)
        return vehicle

    def mark_unavailable(self, vehicle_ids: list[int]) -> int:
        """Batch soft-removal. Overridden rows are excluded at the SQL level too."""
        if not vehicle_ids:
            return 0
        statement = (
            update(Vehicle)
            .where(Vehicle.id.in_(vehicle_ids), Vehicle.override_active == False)
            .values(is_available=False, updated_at=datetime.utcnow())
            .execution_options(synchronize_session="fetch")
        )
        # A bulk UPDATE can fail on execute (lock timeout), not only at commit
        try:
            result = self.db.execute(statement)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Mark unavailable failed: %s", exc)
            raise StoreError(f"Mark unavailable failed: {exc}") from exc
        return result.rowcount

    def _commit(self, message: str, provider_id: str | None = None) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("%s: %s", message, exc)
            raise StoreError(f"{message}: {exc}", provider_id) from exc
