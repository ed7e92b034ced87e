"""Reward bookkeeping: distribution log, collectible inventory, experience."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from competition_engine.core.database import Base
from competition_engine.models.base import TimestampMixin


class RewardType(str, enum.Enum):
    BADGE = "badge"
    TROPHY = "trophy"
    MEDAL = "medal"
    CROWN = "crown"
    TITLE = "title"
    POINTS = "points"
    EXPERIENCE = "experience"


COLLECTIBLE_REWARD_TYPES = frozenset(
    {RewardType.BADGE, RewardType.TROPHY, RewardType.MEDAL, RewardType.CROWN}
)

SEASONAL_COMPETITION_SOURCE = "SEASONAL_COMPETITION"


class RewardDistribution(Base):
    """Append-only record of one granted reward."""

    __tablename__ = "reward_distributions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    source_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default=SEASONAL_COMPETITION_SOURCE,
    )
    source_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    rank: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    reason: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    reward_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    reward_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    reward_value: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    distributed_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_reward_distributions_user", "user_id", "distributed_at"),
        Index("idx_reward_distributions_source", "source_type", "source_id"),
    )


class RewardInventory(Base):
    """Collectible item (badge, trophy, medal, crown) owned by a user."""

    __tablename__ = "reward_inventory"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    reward_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    reward_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    reward_value: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    source_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default=SEASONAL_COMPETITION_SOURCE,
    )
    source_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    acquired_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_reward_inventory_user", "user_id"),
    )


class ExperienceProfile(Base, TimestampMixin):
    """Cumulative experience counter per user."""

    __tablename__ = "experience_profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
    )
    experience_points: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    experience_level: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="BEGINNER",
    )
    level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    active_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    last_active_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
