"""Archive model: immutable snapshot written once per completed competition."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from competition_engine.core.database import Base
from competition_engine.models.base import JSONType

if TYPE_CHECKING:
    from competition_engine.models.competition import Competition


class CompetitionArchive(Base):
    """Final rankings, statistics and granted rewards of a competition."""

    __tablename__ = "competition_archives"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    # Unique: a second finalization attempt fails on insert
    season_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("competitions.id"),
        unique=True,
        nullable=False,
    )
    season_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    season_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    start_date: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    end_date: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    final_rankings: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
    )
    participant_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    rewards_distributed: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )
    season_stats: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )
    archived_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )
    archive_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    # Relationships
    competition: Mapped["Competition"] = relationship(
        "Competition", back_populates="archive"
    )

    __table_args__ = (
        Index("idx_archives_archived_at", "archived_at"),
    )
