"""API v1 routers."""

from competition_engine.api.v1 import archives, competitions, engine

__all__ = ["archives", "competitions", "engine"]
