"""Sync endpoints: staff login, manual trigger, scheduler hook, logs, override toggle."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from stocksync.api.auth import get_staff_user_required
from stocksync.database.db import get_db
from stocksync.database.models import StaffUser, Vehicle
from stocksync.services.auth_service import authenticate_staff, create_access_token
from stocksync.services.reconciliation import SyncResult, run_stock_sync
from stocksync.services.sync_logger import SyncLogger

logger = logging.getLogger(__name__)

sync_router = APIRouter(tags=["sync"])


# --- Request/Response Models ---

class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class OverrideRequest(BaseModel):
    override_active: bool


class SyncLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sync_type: str
    status: str
    event_type: str | None
    provider_id: str | None
    cars_added: int
    cars_updated: int
    cars_marked_unavailable: int
    duration_ms: int
    error_message: str | None
    created_at: datetime


def _sync_response(result: SyncResult) -> JSONResponse:
    return JSONResponse(result.to_dict(), status_code=200 if result.success else 207)


def _run_sync(db: Session, trigger: str) -> JSONResponse:
    logger.info("Stock sync requested (%s)", trigger)
    try:
        result = run_stock_sync(db)
    except Exception as exc:
        logger.exception("Stock sync (%s) failed", trigger)
        return JSONResponse(
            {"success": False, "status": "failed", "message": "Sync failed", "errors": [str(exc)]},
            status_code=500,
        )
    return _sync_response(result)


# --- Endpoints ---

@sync_router.post("/auth/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    """Exchange staff credentials for an access token."""
    user = authenticate_staff(req.email, req.password, db)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return TokenResponse(access_token=create_access_token(user.id))


@sync_router.post("/sync/trigger")
def trigger_sync(
    staff: StaffUser = Depends(get_staff_user_required),
    db: Session = Depends(get_db),
):
    """Run a full stock sync now. 200 on a clean run, 207 when errors were collected."""
    return _run_sync(db, f"manual by {staff.email}")


@sync_router.api_route("/sync/scheduled", methods=["GET", "POST"])
def scheduled_sync(db: Session = Depends(get_db)):
    """Scheduler hook. Failures are only visible in sync_logs."""
    return _run_sync(db, "scheduled")


@sync_router.get("/sync/logs", response_model=list[SyncLogResponse])
def sync_logs(
    limit: int = 50,
    staff: StaffUser = Depends(get_staff_user_required),
    db: Session = Depends(get_db),
):
    limit = max(1, min(limit, 500))
    return SyncLogger(db).recent(limit)


@sync_router.patch("/vehicles/{vehicle_id}/override")
def set_override(
    vehicle_id: int,
    req: OverrideRequest,
    staff: StaffUser = Depends(get_staff_user_required),
    db: Session = Depends(get_db),
):
    """Freeze a vehicle against automated writes, or release it."""
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")

    vehicle.override_active = req.override_active
    db.commit()
    db.refresh(vehicle)
    logger.info(
        "Override %s for vehicle %s by %s",
        "enabled" if vehicle.override_active else "cleared", vehicle.provider_id or vehicle.id, staff.email,
    )
    return {
        "id": vehicle.id,
        "provider_id": vehicle.provider_id,
        "override_active": vehicle.override_active,
    }
