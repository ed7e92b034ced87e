"""Business logic services."""

from competition_engine.services.engine import CompetitionEngine
from competition_engine.services.redis_service import RedisService

__all__ = [
    "CompetitionEngine",
    "RedisService",
]
