"""Final ranking and reward resolution.

Pure functions: they read participant rows and the rewards configuration
and return plain values. Writing grants is the reward service's job.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable
from uuid import UUID

from competition_engine.core.clock import to_db_time
from competition_engine.models.participant import Participant
from competition_engine.models.reward import RewardType
from competition_engine.schemas.reward import RewardDescriptor, RewardsConfig

TIER_REWARD = "TIER_REWARD"
PARTICIPATION_REWARD = "PARTICIPATION_REWARD"
CATEGORY_REWARD = "CATEGORY_REWARD"

# Ranked participants are active, so they all count as full participation
ACTIVE_PARTICIPATION_RATE = 100.0


@dataclass(frozen=True)
class RankedParticipant:
    participant_id: UUID
    user_id: UUID
    final_rank: int
    final_score: float
    category_scores: dict[str, float] = field(default_factory=dict)

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-ready form stored in the archive."""
        return {
            "participant_id": str(self.participant_id),
            "user_id": str(self.user_id),
            "final_rank": self.final_rank,
            "final_score": self.final_score,
            "category_scores": dict(self.category_scores),
        }


@dataclass(frozen=True)
class FinalRankings:
    participants: list[RankedParticipant]
    total_score: float
    average_score: float
    top_score: float

    @property
    def total_participants(self) -> int:
        return len(self.participants)

    def by_rank(self) -> dict[int, RankedParticipant]:
        return {p.final_rank: p for p in self.participants}


@dataclass(frozen=True)
class GrantRequest:
    """One reward to hand to one user."""

    user_id: UUID
    reward_name: str
    reward_type: RewardType
    reward_value: int
    reason: str
    rank: int | None
    source: str


def _score(value: Decimal | float | int | None) -> float:
    return float(value or 0)


def round_half_up(value: float, places: int = 0) -> float:
    """Round halves away from zero; ``round`` would round them to even."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _tie_break_key(participant: Participant) -> tuple:
    # Higher score first, then earlier enrollment, then id for a total order
    enrolled_at: datetime | None = participant.enrolled_at
    return (
        -_score(participant.total_score),
        enrolled_at is None,
        to_db_time(enrolled_at) if enrolled_at is not None else datetime.min,
        str(participant.id),
    )


def rank_participants(participants: Iterable[Participant]) -> FinalRankings:
    """Rank active participants by total score, 1-based and gap-free.

    Inactive participants are ignored. Ties are broken by enrollment time,
    then by participant id, so the same input always yields the same ranks.
    """
    active = sorted((p for p in participants if p.is_active), key=_tie_break_key)

    ranked = [
        RankedParticipant(
            participant_id=p.id,
            user_id=p.user_id,
            final_rank=position,
            final_score=_score(p.total_score),
            category_scores={k: float(v) for k, v in (p.category_scores or {}).items()},
        )
        for position, p in enumerate(active, start=1)
    ]

    total_score = sum(p.final_score for p in ranked)
    average_score = round_half_up(total_score / len(ranked), 2) if ranked else 0.0
    top_score = max((p.final_score for p in ranked), default=0.0)

    return FinalRankings(
        participants=ranked,
        total_score=total_score,
        average_score=average_score,
        top_score=top_score,
    )


def _grant(
    participant: RankedParticipant,
    descriptor: RewardDescriptor,
    reason: str,
    source: str,
    reward_name: str | None = None,
) -> GrantRequest:
    return GrantRequest(
        user_id=participant.user_id,
        reward_name=reward_name or descriptor.reward,
        reward_type=descriptor.type,
        reward_value=descriptor.value,
        reason=reason,
        rank=participant.final_rank,
        source=source,
    )


def category_leaders(rankings: FinalRankings, category: str, limit: int) -> list[RankedParticipant]:
    """Top ``limit`` participants with a positive score in ``category``.

    Equal category scores keep the final ranking order.
    """
    scored = [p for p in rankings.participants if p.category_scores.get(category, 0) > 0]
    scored.sort(key=lambda p: -p.category_scores[category])
    return scored[:limit]


def resolve_reward_grants(
    rewards: RewardsConfig,
    rankings: FinalRankings,
    competition_name: str,
) -> list[GrantRequest]:
    """Expand the rewards configuration into grant requests.

    Tier places that no participant reached yield nothing. Tier grants come
    first in tier order, then one participation grant per ranked participant
    (skipped when the participation minimum is above what a ranked
    participant reaches), then category grants in category order.
    """
    by_rank = rankings.by_rank()
    grants: list[GrantRequest] = []

    for tier in rewards.tiers:
        for rank in tier.place.ranks():
            participant = by_rank.get(rank)
            if participant is None:
                continue
            grants.append(
                _grant(participant, tier, f"{competition_name} - Place {rank}", TIER_REWARD)
            )

    participation = rewards.participation
    if participation is not None and (
        participation.minimum_participation is None
        or ACTIVE_PARTICIPATION_RATE >= participation.minimum_participation
    ):
        for participant in rankings.participants:
            grants.append(
                _grant(
                    participant,
                    participation,
                    f"{competition_name} - Participation",
                    PARTICIPATION_REWARD,
                )
            )

    for category_reward in rewards.categories:
        category = category_reward.category
        leaders = category_leaders(rankings, category, category_reward.top_performers)
        for position, participant in enumerate(leaders, start=1):
            grants.append(
                _grant(
                    participant,
                    category_reward,
                    f"{category} Champion - Position {position}",
                    CATEGORY_REWARD,
                    reward_name=f"{category_reward.reward} - {category}",
                )
            )

    return grants


def build_season_stats(total_participants: int, rankings: FinalRankings) -> dict[str, Any]:
    """Statistics block of the archive.

    ``total_participants`` counts every enrollment, including participants
    who left; the completion rate is the active share of it.
    """
    active = rankings.total_participants
    completion_rate = active / total_participants if total_participants else 0.0
    return {
        "total_participants": total_participants,
        "active_participants": active,
        "completion_rate": completion_rate,
        "average_score": rankings.average_score,
        "top_score": rankings.top_score,
        "total_score": int(round_half_up(rankings.total_score)),
    }
