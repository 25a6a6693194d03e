"""Stock sync schema: staff_users, vehicles, sync_logs.

Revision ID: 0001
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "staff_users",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(100)),
        sa.Column("is_active", sa.Boolean(), default=True),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )

    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("provider_id", sa.String(100), unique=True, index=True),
        sa.Column("provider_advertiser_id", sa.String(50)),
        sa.Column("make", sa.String(50), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("year", sa.Integer()),
        sa.Column("price", sa.Float()),
        sa.Column("mileage", sa.Integer()),
        sa.Column("fuel_type", sa.String(30)),
        sa.Column("transmission", sa.String(30)),
        sa.Column("category", sa.String(30)),
        sa.Column("colour", sa.String(50)),
        sa.Column("engine", sa.String(50)),
        sa.Column("style", sa.String(200)),
        sa.Column("doors", sa.Integer()),
        sa.Column("road_tax", sa.String(50)),
        sa.Column("registration", sa.String(20)),
        sa.Column("vin", sa.String(17)),
        sa.Column("description", sa.Text()),
        sa.Column("cover_image_url", sa.Text()),
        sa.Column("gallery_images", sa.JSON()),
        sa.Column("synced_from_provider", sa.Boolean(), default=False),
        sa.Column("override_active", sa.Boolean(), default=False),
        sa.Column("last_synced_at", sa.DateTime()),
        sa.Column("is_available", sa.Boolean(), default=True),
        sa.Column("provider_data", sa.JSON()),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_index("ix_vehicles_synced_available", "vehicles", ["synced_from_provider", "is_available"])

    op.create_table(
        "sync_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("sync_type", sa.String(20)),
        sa.Column("status", sa.String(20)),
        sa.Column("event_type", sa.String(20)),
        sa.Column("provider_id", sa.String(100)),
        sa.Column("cars_added", sa.Integer()),
        sa.Column("cars_updated", sa.Integer()),
        sa.Column("cars_marked_unavailable", sa.Integer()),
        sa.Column("duration_ms", sa.Integer()),
        sa.Column("error_message", sa.Text()),
        sa.Column("created_at", sa.DateTime(), index=True),
    )


def downgrade() -> None:
    op.drop_table("sync_logs")
    op.drop_index("ix_vehicles_synced_available", table_name="vehicles")
    op.drop_table("vehicles")
    op.drop_table("staff_users")
