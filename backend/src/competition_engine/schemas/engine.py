"""Engine operation schemas (scheduler, transitions, finalization)."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from competition_engine.schemas.archive import ArchiveResponse


class AutoCreateResponse(BaseModel):
    created: list[str]
    skipped: list[str]
    failed: list[str]


class StatusUpdateResponse(BaseModel):
    activated: int
    completed: int
    updated: int
    failed: list[UUID]


class RewardSummaryResponse(BaseModel):
    total_rewards: int
    successful_distributions: int
    failed_distributions: int
    rewards_by_type: dict[str, int]
    experience_distributed: int
    notifications_sent: int
    notifications_failed: int


class CompleteCompetitionResponse(BaseModel):
    archive: ArchiveResponse
    created: bool
    reward_summary: RewardSummaryResponse | None = None


class SchedulerStatusResponse(BaseModel):
    statistics: dict[str, int]
    total: int
    checked_at: datetime


class MaintenanceResponse(BaseModel):
    statuses: StatusUpdateResponse
    created: AutoCreateResponse
    ran_at: datetime
