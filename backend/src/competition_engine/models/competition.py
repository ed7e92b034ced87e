"""Competition (season) model and its lifecycle enums."""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from competition_engine.core.database import Base
from competition_engine.models.base import JSONType, TimestampMixin

if TYPE_CHECKING:
    from competition_engine.models.archive import CompetitionArchive
    from competition_engine.models.participant import Participant


class CompetitionStatus(str, enum.Enum):
    """Persisted status. CANCELLED is set outside the engine and is terminal."""

    UPCOMING = "UPCOMING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class CompetitionType(str, enum.Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"
    CUSTOM = "CUSTOM"


class CompetitionPhase(str, enum.Enum):
    """Derived, display-oriented phase. Never persisted."""

    REGISTRATION = "registration"
    PRE_START = "pre_start"
    ACTIVE = "active"
    ENDING_SOON = "ending_soon"
    COMPLETED = "completed"
    ARCHIVED = "archived"


# Statuses the engine may still move forward
OPEN_STATUSES = (CompetitionStatus.UPCOMING.value, CompetitionStatus.ACTIVE.value)
TERMINAL_STATUSES = (CompetitionStatus.COMPLETED.value, CompetitionStatus.CANCELLED.value)


class Competition(Base, TimestampMixin):
    """A time-boxed competition with an embedded reward configuration."""

    __tablename__ = "competitions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )
    display_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CompetitionStatus.UPCOMING.value,
    )
    start_date: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    end_date: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    registration_start_date: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    registration_end_date: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    min_participants: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    max_participants: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    included_categories: Mapped[list[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )
    rewards: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
    )
    scoring_rules: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
    )
    is_public: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    auto_enroll: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # Relationships
    participants: Mapped[List["Participant"]] = relationship(
        "Participant", back_populates="competition"
    )
    archive: Mapped[Optional["CompetitionArchive"]] = relationship(
        "CompetitionArchive", back_populates="competition", uselist=False
    )

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="chk_competition_dates"),
        CheckConstraint(
            "registration_end_date IS NULL OR registration_end_date <= start_date",
            name="chk_competition_registration",
        ),
        Index("idx_competitions_status_start", "status", "start_date"),
        Index("idx_competitions_status_end", "status", "end_date"),
        Index("idx_competitions_type", "type"),
    )
