"""Competition schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from competition_engine.core.clock import ensure_utc
from competition_engine.models.competition import CompetitionPhase, CompetitionStatus, CompetitionType
from competition_engine.schemas.archive import ArchiveResponse
from competition_engine.schemas.reward import RewardsConfig, ScoringRules


class CompetitionCreate(BaseModel):
    """Schema for competition creation, used by the scheduler and admin API."""

    name: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_\-]+$")
    display_name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    type: CompetitionType = CompetitionType.CUSTOM
    start_date: datetime
    end_date: datetime
    registration_start_date: datetime | None = None
    registration_end_date: datetime | None = None
    min_participants: int = Field(default=1, ge=1)
    max_participants: int | None = Field(default=None, ge=1)
    included_categories: list[str] = Field(default_factory=list)
    rewards: RewardsConfig = Field(default_factory=RewardsConfig)
    scoring_rules: ScoringRules | None = None
    is_public: bool = True
    auto_enroll: bool = False

    @field_validator(
        "start_date", "end_date", "registration_start_date", "registration_end_date"
    )
    @classmethod
    def _normalize_timezone(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _check_invariants(self) -> "CompetitionCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        if self.registration_end_date is not None:
            if self.registration_end_date > self.start_date:
                raise ValueError("registration_end_date must not be after start_date")
            if (
                self.registration_start_date is not None
                and self.registration_start_date > self.registration_end_date
            ):
                raise ValueError("registration_start_date must not be after registration_end_date")
        if self.max_participants is not None and self.max_participants < self.min_participants:
            raise ValueError("max_participants must be at least min_participants")
        if self.scoring_rules is not None and self.included_categories:
            unknown = set(self.scoring_rules.categories) - set(self.included_categories)
            if unknown:
                raise ValueError(f"scoring rules reference excluded categories: {sorted(unknown)}")
        if self.included_categories:
            unknown = {r.category for r in self.rewards.categories} - set(self.included_categories)
            if unknown:
                raise ValueError(f"category rewards reference excluded categories: {sorted(unknown)}")
        return self


class CompetitionStats(BaseModel):
    """Schema for competition statistics."""

    participant_count: int = 0
    total_score: float = 0.0
    average_score: float = 0.0
    top_score: float = 0.0


class CompetitionSummary(BaseModel):
    """Schema for a competition enriched with its derived phase and stats."""

    id: UUID
    name: str
    display_name: str
    description: str | None = None
    type: CompetitionType
    status: CompetitionStatus
    start_date: datetime
    end_date: datetime
    registration_start_date: datetime | None = None
    registration_end_date: datetime | None = None
    min_participants: int
    max_participants: int | None = None
    included_categories: list[str] = []
    rewards: RewardsConfig | None = None
    scoring_rules: ScoringRules | None = None
    is_public: bool
    auto_enroll: bool
    phase: CompetitionPhase
    time_remaining: str | None = None
    progress: int
    stats: CompetitionStats
    current_user_participating: bool = False
    current_user_rank: int | None = None
    current_user_score: float | None = None


class CompetitionListResponse(BaseModel):
    """Schema for competition list response."""

    competitions: list[CompetitionSummary]
    total: int


class ParticipantResponse(BaseModel):
    """Schema for participant response."""

    id: UUID
    competition_id: UUID
    user_id: UUID
    total_score: float
    overall_rank: int | None = None
    category_scores: dict[str, float] = {}
    category_ranks: dict[str, int] = {}
    is_active: bool
    auto_enrolled: bool
    enrolled_at: datetime

    model_config = {"from_attributes": True}


class CompetitionDetailResponse(BaseModel):
    """Schema for competition detail response with participants and archive."""

    competition: CompetitionSummary
    participants: list[ParticipantResponse]
    user_participation: ParticipantResponse | None = None
    archive: ArchiveResponse | None = None


class LeaderboardEntry(BaseModel):
    position: int
    user_id: UUID
    score: float
    category_scores: dict[str, float] = {}


class LeaderboardResponse(BaseModel):
    competition_id: UUID
    leaderboard: list[LeaderboardEntry]
    total_participants: int


class ParticipationRequest(BaseModel):
    """Schema for join/leave request."""

    user_id: UUID
