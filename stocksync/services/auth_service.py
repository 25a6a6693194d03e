"""Staff authentication: password hashing, JWT creation/verification, account lookup."""

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy.orm import Session

from stocksync.config.settings import get_settings
from stocksync.database.models import StaffUser

settings = get_settings()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(user_id: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict | None:
    """Decode a JWT token. Returns payload dict or None if invalid/expired."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError:
        return None


class DuplicateEmailError(Exception):
    """Raised when a staff account already exists for the email."""


def create_staff_user(email: str, password: str, display_name: str | None, db: Session) -> StaffUser:
    """Create a staff account. Raises DuplicateEmailError if the email is taken."""
    email = email.strip().lower()
    if db.query(StaffUser).filter(StaffUser.email == email).first():
        raise DuplicateEmailError("Email already registered")

    user = StaffUser(
        email=email,
        hashed_password=hash_password(password),
        display_name=display_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# Pre-hashed dummy for constant-time rejection of unknown emails
_DUMMY_HASH = bcrypt.hashpw(b"dummy", bcrypt.gensalt()).decode("utf-8")


def authenticate_staff(email: str, password: str, db: Session) -> StaffUser | None:
    user = db.query(StaffUser).filter(StaffUser.email == email.strip().lower()).first()
    if not user or not user.is_active:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
