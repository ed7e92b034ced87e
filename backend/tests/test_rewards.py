"""Tests for applying reward grants to the store.

Tests verify:
- Distribution log, inventory and experience writes
- Experience accumulates on an existing profile, including one created
  concurrently by another finalization
- One failing write does not undo the others
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from competition_engine.core.clock import to_db_time
from competition_engine.models.reward import (
    ExperienceProfile,
    RewardDistribution,
    RewardInventory,
    RewardType,
)
from competition_engine.services.ranking_service import PARTICIPATION_REWARD, TIER_REWARD, GrantRequest
from competition_engine.services.reward_service import GrantResult, RewardService

from conftest import NOW


def make_grant(user_id=None, reward_type=RewardType.BADGE, value=10, rank=None, name="Badge"):
    return GrantRequest(
        user_id=user_id or uuid4(),
        reward_name=name,
        reward_type=reward_type,
        reward_value=value,
        reason=f"Test Cup - {name}",
        rank=rank,
        source=TIER_REWARD if rank else PARTICIPATION_REWARD,
    )


class FailingInventoryService(RewardService):
    """Inventory writes fail for one user."""

    def __init__(self, db, failing_user):
        super().__init__(db)
        self.failing_user = failing_user

    async def _add_to_inventory(self, grant, source_id, granted_at):
        if grant.user_id == self.failing_user:
            raise RuntimeError("inventory unavailable")
        await super()._add_to_inventory(grant, source_id, granted_at)


class ProfileCreatedMidGrantService(RewardService):
    """Another finalizer commits the user's experience profile mid-grant."""

    def __init__(self, db, session_factory):
        super().__init__(db)
        self.session_factory = session_factory

    async def _record_distribution(self, distribution_id, grant, source_id, granted_at):
        async with self.session_factory() as other:
            other.add(
                ExperienceProfile(
                    user_id=grant.user_id,
                    experience_points=40,
                    experience_level="EXPERT",
                    level=5,
                    active_days=9,
                )
            )
            await other.commit()
        await super()._record_distribution(distribution_id, grant, source_id, granted_at)


class TestApplyGrant:
    """Test single grant writes."""

    @pytest.mark.asyncio
    async def test_collectible_grant_writes_all_three(self, session_factory):
        source_id = uuid4()
        grant = make_grant(reward_type=RewardType.TROPHY, value=500, rank=1, name="Gold Trophy")

        async with session_factory() as session:
            result = await RewardService(session).apply_grant(grant, source_id, NOW)
            await session.commit()

        assert result.success is True
        assert result.distribution_id is not None
        assert result.errors == []

        async with session_factory() as session:
            distribution = await session.get(RewardDistribution, result.distribution_id)
            assert distribution.user_id == grant.user_id
            assert distribution.source_id == source_id
            assert distribution.rank == 1
            assert distribution.reward_type == "trophy"

            items = (await session.execute(select(RewardInventory))).scalars().all()
            assert [(i.user_id, i.reward_name) for i in items] == [(grant.user_id, "Gold Trophy")]

            profile = await session.get(ExperienceProfile, grant.user_id)
            assert profile.experience_points == 500
            assert profile.experience_level == "BEGINNER"
            assert profile.level == 1

    @pytest.mark.asyncio
    async def test_non_collectible_grant_skips_inventory(self, session_factory):
        grant = make_grant(reward_type=RewardType.POINTS, value=50)

        async with session_factory() as session:
            result = await RewardService(session).apply_grant(grant, uuid4(), NOW)
            await session.commit()

            inventory_count = await session.scalar(select(func.count(RewardInventory.id)))

        assert result.success is True
        assert inventory_count == 0

    @pytest.mark.asyncio
    async def test_zero_value_grant_skips_experience(self, session_factory):
        grant = make_grant(value=0)

        async with session_factory() as session:
            result = await RewardService(session).apply_grant(grant, uuid4(), NOW)
            await session.commit()

            profile = await session.get(ExperienceProfile, grant.user_id)

        assert result.success is True
        assert profile is None

    @pytest.mark.asyncio
    async def test_experience_accumulates(self, session_factory):
        user_id = uuid4()
        grants = [
            make_grant(user_id, RewardType.MEDAL, 300, rank=2, name="Silver Medal"),
            make_grant(user_id, RewardType.BADGE, 10, name="Participant Badge"),
        ]

        async with session_factory() as session:
            summary = await RewardService(session).apply_grants(grants, uuid4(), NOW)
            await session.commit()

        async with session_factory() as session:
            profile = await session.get(ExperienceProfile, user_id)

        assert summary.successful_distributions == 2
        assert profile.experience_points == 310

    @pytest.mark.asyncio
    async def test_profile_created_concurrently_is_accumulated(self, session_factory):
        grant = make_grant(reward_type=RewardType.POINTS, value=25)

        async with session_factory() as session:
            service = ProfileCreatedMidGrantService(session, session_factory)
            result = await service.apply_grant(grant, uuid4(), NOW)
            await session.commit()

        async with session_factory() as session:
            profile = await session.get(ExperienceProfile, grant.user_id)

        assert result.success is True
        assert result.errors == []
        assert profile.experience_points == 65
        # The existing profile's progression is left alone
        assert profile.experience_level == "EXPERT"
        assert profile.level == 5
        assert profile.active_days == 9
        assert profile.last_active_at == to_db_time(NOW)


class TestApplyGrants:
    """Test batches and failure isolation."""

    @pytest.mark.asyncio
    async def test_failed_write_is_isolated(self, session_factory):
        lucky, unlucky = uuid4(), uuid4()
        grants = [make_grant(lucky, value=20), make_grant(unlucky, value=20)]

        async with session_factory() as session:
            service = FailingInventoryService(session, failing_user=unlucky)
            summary = await service.apply_grants(grants, uuid4(), NOW)
            await session.commit()

        assert summary.total_rewards == 2
        assert summary.successful_distributions == 1
        assert summary.failed_distributions == 1

        failed = [r for r in summary.results if not r.success][0]
        assert failed.grant.user_id == unlucky
        assert failed.errors == ["inventory: inventory unavailable"]
        # The other writes of the failed grant still went through
        assert failed.distribution_id is not None

        async with session_factory() as session:
            distributions = await session.scalar(select(func.count(RewardDistribution.id)))
            owners = (await session.execute(select(RewardInventory.user_id))).scalars().all()
            unlucky_profile = await session.get(ExperienceProfile, unlucky)

        assert distributions == 2
        assert owners == [lucky]
        assert unlucky_profile.experience_points == 20

    @pytest.mark.asyncio
    async def test_summary_counts(self, db_session):
        grants = [
            make_grant(reward_type=RewardType.TROPHY, value=500, rank=1),
            make_grant(reward_type=RewardType.BADGE, value=10),
            make_grant(reward_type=RewardType.BADGE, value=10),
            make_grant(reward_type=RewardType.TITLE, value=0),
        ]

        summary = await RewardService(db_session).apply_grants(grants, uuid4(), NOW)

        assert summary.rewards_by_type == {"trophy": 1, "badge": 2, "title": 1}
        assert summary.experience_distributed == 520
        assert summary.to_dict()["failed_distributions"] == 0

    @pytest.mark.asyncio
    async def test_granted_to_filters_by_user(self, db_session):
        user_id = uuid4()
        grants = [make_grant(user_id, name="A"), make_grant(name="B"), make_grant(user_id, name="C")]

        summary = await RewardService(db_session).apply_grants(grants, uuid4(), NOW)

        assert [r.grant.reward_name for r in summary.granted_to(user_id)] == ["A", "C"]

    def test_grant_record_is_json_ready(self):
        grant = make_grant(reward_type=RewardType.CROWN, value=2000, rank=1)

        record = GrantResult(grant=grant, success=False, errors=["experience: boom"]).to_record()

        assert record["user_id"] == str(grant.user_id)
        assert record["reward_type"] == "crown"
        assert record["distribution_id"] is None
        assert record["success"] is False
