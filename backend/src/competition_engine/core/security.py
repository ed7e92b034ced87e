"""Token helpers for privileged callers."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from competition_engine.core.config import settings

ADMIN_ROLE = "admin"


def create_access_token(subject: str, role: str = "user", expires_minutes: int = 60) -> str:
    """Create a signed JWT for ``subject`` carrying ``role``."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    payload = {"sub": subject, "role": role, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode a JWT; returns None when the token is invalid or expired."""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def verify_system_key(provided: str | None) -> bool:
    """Check a caller-supplied system key against the configured one."""
    if not settings.SYSTEM_API_KEY or not provided:
        return False
    return secrets.compare_digest(provided, settings.SYSTEM_API_KEY)
