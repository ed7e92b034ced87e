"""Pydantic schemas for request/response validation."""

from competition_engine.schemas.archive import (
    ArchiveListResponse,
    ArchiveResponse,
    FinalRankingEntry,
    RewardRecord,
    SeasonStats,
)
from competition_engine.schemas.competition import (
    CompetitionCreate,
    CompetitionDetailResponse,
    CompetitionListResponse,
    CompetitionStats,
    CompetitionSummary,
    LeaderboardEntry,
    LeaderboardResponse,
    ParticipantResponse,
    ParticipationRequest,
)
from competition_engine.schemas.engine import (
    AutoCreateResponse,
    CompleteCompetitionResponse,
    MaintenanceResponse,
    RewardSummaryResponse,
    SchedulerStatusResponse,
    StatusUpdateResponse,
)
from competition_engine.schemas.reward import (
    CategoryReward,
    CategoryRule,
    ParticipationReward,
    PlaceRange,
    RewardDescriptor,
    RewardsConfig,
    RewardTier,
    ScoringRules,
    SinglePlace,
    parse_rewards,
)

__all__ = [
    "SinglePlace",
    "PlaceRange",
    "RewardDescriptor",
    "RewardTier",
    "CategoryReward",
    "ParticipationReward",
    "RewardsConfig",
    "CategoryRule",
    "ScoringRules",
    "parse_rewards",
    "CompetitionCreate",
    "CompetitionStats",
    "CompetitionSummary",
    "CompetitionListResponse",
    "CompetitionDetailResponse",
    "ParticipantResponse",
    "ParticipationRequest",
    "LeaderboardEntry",
    "LeaderboardResponse",
    "SeasonStats",
    "FinalRankingEntry",
    "RewardRecord",
    "ArchiveResponse",
    "ArchiveListResponse",
    "AutoCreateResponse",
    "StatusUpdateResponse",
    "RewardSummaryResponse",
    "CompleteCompetitionResponse",
    "SchedulerStatusResponse",
    "MaintenanceResponse",
]
