"""Reward service: applies resolved grants to the store.

Every grant performs up to three independent writes (distribution record,
inventory item, experience) and each runs in its own savepoint. A failed
write is rolled back to its savepoint and reported on the grant's result;
the surrounding finalization transaction stays usable.
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from competition_engine.core.clock import to_db_time
from competition_engine.middleware.metrics import record_reward_grant
from competition_engine.models.reward import (
    COLLECTIBLE_REWARD_TYPES,
    SEASONAL_COMPETITION_SOURCE,
    ExperienceProfile,
    RewardDistribution,
    RewardInventory,
)
from competition_engine.services.ranking_service import GrantRequest

logger = logging.getLogger(__name__)

UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


@dataclass
class GrantResult:
    grant: GrantRequest
    success: bool
    distribution_id: UUID | None = None
    errors: list[str] = field(default_factory=list)

    def to_record(self) -> dict[str, Any]:
        """JSON-ready form stored in the archive's rewards list."""
        return {
            "user_id": str(self.grant.user_id),
            "reward_name": self.grant.reward_name,
            "reward_type": self.grant.reward_type.value,
            "reward_value": self.grant.reward_value,
            "reason": self.grant.reason,
            "rank": self.grant.rank,
            "success": self.success,
            "distribution_id": str(self.distribution_id) if self.distribution_id else None,
            "errors": list(self.errors),
        }


@dataclass
class RewardSummary:
    results: list[GrantResult] = field(default_factory=list)
    notifications_sent: int = 0
    notifications_failed: int = 0

    @property
    def total_rewards(self) -> int:
        return len(self.results)

    @property
    def successful_distributions(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_distributions(self) -> int:
        return self.total_rewards - self.successful_distributions

    @property
    def rewards_by_type(self) -> dict[str, int]:
        counts = Counter(r.grant.reward_type.value for r in self.results if r.success)
        return dict(counts)

    @property
    def experience_distributed(self) -> int:
        return sum(
            r.grant.reward_value for r in self.results if r.success and r.grant.reward_value > 0
        )

    def granted_to(self, user_id: UUID) -> list[GrantResult]:
        return [r for r in self.results if r.success and r.grant.user_id == user_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_rewards": self.total_rewards,
            "successful_distributions": self.successful_distributions,
            "failed_distributions": self.failed_distributions,
            "rewards_by_type": self.rewards_by_type,
            "experience_distributed": self.experience_distributed,
            "notifications_sent": self.notifications_sent,
            "notifications_failed": self.notifications_failed,
        }


class RewardService:
    """Service class for reward grant operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def apply_grants(
        self, grants: list[GrantRequest], source_id: UUID, now: datetime
    ) -> RewardSummary:
        """Apply grants one after another on the shared session.

        Args:
            grants: Resolved grant requests
            source_id: Competition UUID the rewards come from
            now: Grant timestamp

        Returns:
            Summary with one result per grant
        """
        summary = RewardSummary()
        for grant in grants:
            result = await self.apply_grant(grant, source_id, now)
            record_reward_grant(result.success)
            summary.results.append(result)

        if summary.failed_distributions:
            logger.warning(
                f"Competition {source_id}: {summary.failed_distributions} of "
                f"{summary.total_rewards} reward grants failed"
            )
        return summary

    async def apply_grant(
        self, grant: GrantRequest, source_id: UUID, now: datetime
    ) -> GrantResult:
        """Apply one grant. Never raises for a failed write."""
        result = GrantResult(grant=grant, success=True)
        granted_at = to_db_time(now)

        distribution_id = uuid.uuid4()

        async def record_distribution() -> None:
            await self._record_distribution(distribution_id, grant, source_id, granted_at)

        if await self._run_isolated("distribution", grant, record_distribution, result):
            result.distribution_id = distribution_id

        if grant.reward_type in COLLECTIBLE_REWARD_TYPES:
            async def add_to_inventory() -> None:
                await self._add_to_inventory(grant, source_id, granted_at)

            await self._run_isolated("inventory", grant, add_to_inventory, result)

        if grant.reward_value > 0:
            async def award_experience() -> None:
                await self._award_experience(grant.user_id, grant.reward_value, granted_at)

            await self._run_isolated("experience", grant, award_experience, result)

        return result

    async def _run_isolated(
        self,
        step: str,
        grant: GrantRequest,
        operation: Callable[[], Awaitable[None]],
        result: GrantResult,
    ) -> bool:
        try:
            async with self.db.begin_nested():
                await operation()
        except Exception as e:
            logger.error(f"Failed {step} write for user {grant.user_id} ({grant.reward_name}): {e}")
            result.success = False
            result.errors.append(f"{step}: {e}")
            return False
        return True

    async def _record_distribution(
        self,
        distribution_id: UUID,
        grant: GrantRequest,
        source_id: UUID,
        granted_at: datetime,
    ) -> None:
        self.db.add(
            RewardDistribution(
                id=distribution_id,
                user_id=grant.user_id,
                source_type=SEASONAL_COMPETITION_SOURCE,
                source_id=source_id,
                rank=grant.rank,
                reason=grant.reason,
                reward_name=grant.reward_name,
                reward_type=grant.reward_type.value,
                reward_value=grant.reward_value,
                distributed_at=granted_at,
            )
        )
        await self.db.flush()

    async def _add_to_inventory(
        self, grant: GrantRequest, source_id: UUID, granted_at: datetime
    ) -> None:
        self.db.add(
            RewardInventory(
                user_id=grant.user_id,
                reward_type=grant.reward_type.value,
                reward_name=grant.reward_name,
                reward_value=grant.reward_value,
                source_type=SEASONAL_COMPETITION_SOURCE,
                source_id=source_id,
                acquired_at=granted_at,
            )
        )
        await self.db.flush()

    async def _award_experience(self, user_id: UUID, amount: int, granted_at: datetime) -> None:
        """Add experience, creating the profile with starting values if missing.

        One upsert statement, so a profile created concurrently by another
        finalization is accumulated into instead of failing the insert.
        """
        dialect = self.db.get_bind().dialect.name
        insert = UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"experience upsert is not supported on {dialect}")

        stmt = insert(ExperienceProfile).values(
            user_id=user_id,
            experience_points=amount,
            experience_level="BEGINNER",
            level=1,
            active_days=1,
            last_active_at=granted_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ExperienceProfile.user_id],
            set_={
                "experience_points": ExperienceProfile.experience_points
                + stmt.excluded.experience_points,
                "last_active_at": stmt.excluded.last_active_at,
                "updated_at": func.now(),
            },
        )
        await self.db.execute(stmt)
