"""Archive schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class SeasonStats(BaseModel):
    total_participants: int
    active_participants: int
    completion_rate: float
    average_score: float
    top_score: float
    total_score: float


class FinalRankingEntry(BaseModel):
    participant_id: UUID
    user_id: UUID
    final_rank: int
    final_score: float
    category_scores: dict[str, float] = {}


class RewardRecord(BaseModel):
    user_id: UUID
    reward_name: str
    reward_type: str
    reward_value: int
    reason: str
    rank: int | None = None
    success: bool
    distribution_id: UUID | None = None
    errors: list[str] = []


class ArchiveResponse(BaseModel):
    """Schema for archive response."""

    id: UUID
    season_id: UUID
    season_name: str
    season_type: str
    start_date: datetime
    end_date: datetime
    final_rankings: list[FinalRankingEntry]
    participant_count: int
    rewards_distributed: list[RewardRecord]
    season_stats: SeasonStats
    archived_at: datetime
    archive_version: int

    model_config = {"from_attributes": True}


class ArchiveListResponse(BaseModel):
    archives: list[ArchiveResponse]
    total: int
