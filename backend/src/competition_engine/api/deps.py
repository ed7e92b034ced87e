"""API dependencies for database access, privileged callers and the engine."""

from datetime import datetime
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from competition_engine.core.clock import utcnow
from competition_engine.core.database import get_db
from competition_engine.core.redis import get_redis
from competition_engine.core.security import ADMIN_ROLE, decode_access_token, verify_system_key
from competition_engine.services.engine import CompetitionEngine
from competition_engine.services.notification_service import NotificationDispatcher
from competition_engine.services.redis_service import RedisService

security = HTTPBearer(auto_error=False)


def get_now() -> datetime:
    """Request time, read once per request and passed down explicitly."""
    return utcnow()


async def require_privileged_caller(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    x_system_key: Annotated[str | None, Header()] = None,
) -> str:
    """Accept the shared system key or a bearer token with the admin role.

    Returns:
        "system" for system-key callers, otherwise the token subject

    Raises:
        HTTPException: 401 without credentials, 403 for non-admin tokens
    """
    if verify_system_key(x_system_key):
        return "system"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("role") != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return str(payload.get("sub", "admin"))


async def get_redis_service() -> RedisService:
    """Get RedisService instance with shared Redis connection pool."""
    redis = await get_redis()
    return RedisService(redis)


async def get_notification_dispatcher(
    redis_service: Annotated[RedisService, Depends(get_redis_service)],
) -> NotificationDispatcher:
    return NotificationDispatcher(redis_service)


async def get_competition_engine(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)],
) -> CompetitionEngine:
    """Get CompetitionEngine instance with injected dependencies."""
    return CompetitionEngine(db, notifier)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
Now = Annotated[datetime, Depends(get_now)]
PrivilegedCaller = Annotated[str, Depends(require_privileged_caller)]
EngineDep = Annotated[CompetitionEngine, Depends(get_competition_engine)]
