"""SQLAlchemy ORM models."""

from competition_engine.models.archive import CompetitionArchive
from competition_engine.models.base import TimestampMixin
from competition_engine.models.competition import (
    Competition,
    CompetitionPhase,
    CompetitionStatus,
    CompetitionType,
)
from competition_engine.models.participant import Participant
from competition_engine.models.reward import (
    ExperienceProfile,
    RewardDistribution,
    RewardInventory,
    RewardType,
)

__all__ = [
    "TimestampMixin",
    "Competition",
    "CompetitionPhase",
    "CompetitionStatus",
    "CompetitionType",
    "Participant",
    "CompetitionArchive",
    "RewardDistribution",
    "RewardInventory",
    "ExperienceProfile",
    "RewardType",
]
