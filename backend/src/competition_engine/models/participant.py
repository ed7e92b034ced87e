"""Participant model: one user's enrollment in one competition."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from competition_engine.core.database import Base
from competition_engine.models.base import JSONType, TimestampMixin

if TYPE_CHECKING:
    from competition_engine.models.competition import Competition


class Participant(Base, TimestampMixin):
    """Participant model. Leaving sets is_active=False; rows are never deleted."""

    __tablename__ = "competition_participants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    competition_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("competitions.id"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    total_score: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
    )
    overall_rank: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    category_scores: Mapped[dict[str, float]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )
    category_ranks: Mapped[dict[str, int]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    auto_enrolled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    competition: Mapped["Competition"] = relationship(
        "Competition", back_populates="participants"
    )

    __table_args__ = (
        CheckConstraint("total_score >= 0", name="chk_participant_score_non_negative"),
        UniqueConstraint("competition_id", "user_id", name="uq_participant_competition_user"),
        Index("idx_participants_competition_rank", "competition_id", "overall_rank"),
        Index("idx_participants_competition_score", "competition_id", "total_score"),
        Index("idx_participants_user", "user_id"),
    )
