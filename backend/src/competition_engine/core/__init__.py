from competition_engine.core.clock import ensure_utc, to_db_time, utcnow
from competition_engine.core.config import settings
from competition_engine.core.database import Base, async_session_maker, engine, get_db
from competition_engine.core.redis import close_redis, get_redis
from competition_engine.core.security import (
    create_access_token,
    decode_access_token,
    verify_system_key,
)

__all__ = [
    "settings",
    "Base",
    "engine",
    "async_session_maker",
    "get_db",
    "get_redis",
    "close_redis",
    "utcnow",
    "ensure_utc",
    "to_db_time",
    "create_access_token",
    "decode_access_token",
    "verify_system_key",
]
