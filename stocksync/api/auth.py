"""FastAPI auth dependency for the staff-only endpoints."""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from stocksync.database.db import get_db
from stocksync.database.models import StaffUser
from stocksync.services.auth_service import decode_token


def _extract_token(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        return None
    return auth[7:]


def get_staff_user_required(
    request: Request, db: Session = Depends(get_db)
) -> StaffUser:
    """Returns the authenticated staff user.

    401 when no bearer token is sent, 403 when the token is present but does
    not identify an active staff account.
    """
    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        raise HTTPException(status_code=403, detail="Invalid or expired token")

    try:
        user_id = int(payload["sub"])
    except (KeyError, ValueError, TypeError):
        raise HTTPException(status_code=403, detail="Invalid token")

    user = db.query(StaffUser).filter(StaffUser.id == user_id, StaffUser.is_active == True).first()
    if not user:
        raise HTTPException(status_code=403, detail="Staff user not found")

    return user
