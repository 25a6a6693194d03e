from datetime import datetime
from sqlalchemy import String, Float, Integer, Boolean, DateTime, Text, Index, JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class StaffUser(Base):
    """Dealership staff account allowed to trigger syncs and toggle overrides."""
    __tablename__ = "staff_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class Vehicle(Base):
    """A car on the forecourt. Synced from the provider or entered by staff."""
    __tablename__ = "vehicles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider_id: Mapped[str | None] = mapped_column(String(100), unique=True, index=True)
    provider_advertiser_id: Mapped[str | None] = mapped_column(String(50))

    make: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[int | None] = mapped_column(Integer)
    price: Mapped[float] = mapped_column(Float, default=0)
    mileage: Mapped[int] = mapped_column(Integer, default=0)
    fuel_type: Mapped[str] = mapped_column(String(30), default="Petrol")
    transmission: Mapped[str] = mapped_column(String(30), default="Manual")
    category: Mapped[str] = mapped_column(String(30), default="Saloon")
    colour: Mapped[str | None] = mapped_column(String(50))
    engine: Mapped[str | None] = mapped_column(String(50))
    style: Mapped[str | None] = mapped_column(String(200))  # provider derivative
    doors: Mapped[int | None] = mapped_column(Integer)
    road_tax: Mapped[str | None] = mapped_column(String(50))
    registration: Mapped[str | None] = mapped_column(String(20))
    vin: Mapped[str | None] = mapped_column(String(17))
    description: Mapped[str | None] = mapped_column(Text)

    cover_image_url: Mapped[str | None] = mapped_column(Text)
    gallery_images: Mapped[list] = mapped_column(JSON, default=list)

    # Sync state
    synced_from_provider: Mapped[bool] = mapped_column(Boolean, default=False)
    override_active: Mapped[bool] = mapped_column(Boolean, default=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    provider_data: Mapped[dict | None] = mapped_column(JSON)  # raw payload for diagnostics

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        Index("ix_vehicles_synced_available", "synced_from_provider", "is_available"),
    )


class SyncLog(Base):
    """Outcome of one full sync or webhook event. Written once, never updated."""
    __tablename__ = "sync_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sync_type: Mapped[str] = mapped_column(String(20))  # full_sync, webhook
    status: Mapped[str] = mapped_column(String(20))  # success, partial, failed, skipped, not_found
    event_type: Mapped[str | None] = mapped_column(String(20))  # webhook only
    provider_id: Mapped[str | None] = mapped_column(String(100))  # webhook only
    cars_added: Mapped[int] = mapped_column(Integer, default=0)
    cars_updated: Mapped[int] = mapped_column(Integer, default=0)
    cars_marked_unavailable: Mapped[int] = mapped_column(Integer, default=0)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
