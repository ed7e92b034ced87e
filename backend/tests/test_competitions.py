"""Tests for competition reads, creation and participation.

Tests verify:
- Creation and duplicate names
- Listing order, filters and per-user participation
- Details and leaderboard before and after finalization
- Join/leave rules (capacity, terminal status, reactivation)
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from competition_engine.core.exceptions import (
    CompetitionStateError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from competition_engine.models import Competition, CompetitionPhase, CompetitionStatus, CompetitionType
from competition_engine.services.archive_service import ArchiveService
from competition_engine.services.competition_service import CompetitionService

from conftest import NOW, competition_data, store_competition


class TestCreate:
    """Test competition creation."""

    @pytest.mark.asyncio
    async def test_create_stores_upcoming_competition(self, db_session):
        competition = await CompetitionService(db_session).create_competition(
            competition_data(name="spring_cup", start=NOW + timedelta(days=1), end=NOW + timedelta(days=5))
        )

        assert competition.status == CompetitionStatus.UPCOMING.value
        assert competition.type == CompetitionType.CUSTOM.value
        assert competition.rewards["tiers"][2]["place"] == [3, 5]
        assert competition.start_date.tzinfo is None

    @pytest.mark.asyncio
    async def test_duplicate_name_conflicts(self, db_session):
        service = CompetitionService(db_session)
        await service.create_competition(competition_data(name="spring_cup"))

        with pytest.raises(ConflictError):
            await service.create_competition(competition_data(name="spring_cup"))


class TestList:
    """Test competition listing."""

    @pytest.mark.asyncio
    async def test_ordered_by_status_then_newest_start(self, session_factory):
        await store_competition(session_factory, CompetitionStatus.COMPLETED, name="done")
        await store_competition(
            session_factory, CompetitionStatus.ACTIVE, name="running", end=NOW + timedelta(days=2)
        )
        await store_competition(
            session_factory,
            CompetitionStatus.UPCOMING,
            name="soon",
            start=NOW + timedelta(days=1),
            end=NOW + timedelta(days=8),
        )
        await store_competition(
            session_factory,
            CompetitionStatus.UPCOMING,
            name="later",
            start=NOW + timedelta(days=10),
            end=NOW + timedelta(days=17),
        )
        await store_competition(session_factory, CompetitionStatus.CANCELLED, name="called_off")

        async with session_factory() as session:
            summaries = await CompetitionService(session).list_competitions(NOW)

        assert [s.name for s in summaries] == ["later", "soon", "running", "done", "called_off"]
        phases = {s.name: s.phase for s in summaries}
        assert phases["soon"] == CompetitionPhase.PRE_START
        assert phases["running"] == CompetitionPhase.ACTIVE
        assert phases["done"] == CompetitionPhase.COMPLETED
        assert phases["called_off"] == CompetitionPhase.ARCHIVED

    @pytest.mark.asyncio
    async def test_filters_and_limit(self, session_factory):
        await store_competition(session_factory, CompetitionStatus.ACTIVE, name="a")
        await store_competition(session_factory, CompetitionStatus.ACTIVE, name="b")
        await store_competition(session_factory, CompetitionStatus.COMPLETED, name="c")

        async with session_factory() as session:
            service = CompetitionService(session)
            active = await service.list_competitions(NOW, status=CompetitionStatus.ACTIVE)
            weekly = await service.list_competitions(NOW, competition_type="WEEKLY")
            limited = await service.list_competitions(NOW, limit=1)

        assert {s.name for s in active} == {"a", "b"}
        assert weekly == []
        assert len(limited) == 1

    @pytest.mark.asyncio
    async def test_unknown_type_filter_is_invalid_input(self, db_session):
        with pytest.raises(InvalidInputError):
            await CompetitionService(db_session).list_competitions(NOW, competition_type="DAILY")

    @pytest.mark.asyncio
    async def test_corrupt_stored_rewards_are_invalid_input(self, session_factory):
        competition = await store_competition(session_factory, name="corrupt")
        async with session_factory() as session:
            stored = await session.get(Competition, competition.id)
            stored.rewards = {"tiers": [{"place": 0, "reward": "Nobody", "type": "badge"}]}
            await session.commit()

        async with session_factory() as session:
            with pytest.raises(InvalidInputError):
                await CompetitionService(session).list_competitions(NOW)

    @pytest.mark.asyncio
    async def test_summary_fields(self, session_factory):
        await store_competition(
            session_factory,
            name="halfway",
            start=NOW - timedelta(days=2),
            end=NOW + timedelta(days=2),
        )

        async with session_factory() as session:
            [summary] = await CompetitionService(session).list_competitions(NOW)

        assert summary.progress == 50
        assert summary.time_remaining == "2 days"
        assert summary.stats.participant_count == 0
        assert summary.current_user_participating is False

    @pytest.mark.asyncio
    async def test_stats_include_inactive_enrollments(self, session_factory, ended_competition):
        async with session_factory() as session:
            [summary] = await CompetitionService(session).list_competitions(NOW)

        assert summary.stats.participant_count == 4
        assert summary.stats.total_score == 220
        assert summary.stats.average_score == 55.0
        assert summary.stats.top_score == 90.0

    @pytest.mark.asyncio
    async def test_current_user_participation(self, session_factory):
        competition = await store_competition(
            session_factory, CompetitionStatus.UPCOMING, end=NOW + timedelta(days=3)
        )
        user_id = uuid4()

        async with session_factory() as session:
            service = CompetitionService(session)
            await service.join_competition(competition.id, user_id, NOW)
            [mine] = await service.list_competitions(NOW, user_id=user_id)
            [theirs] = await service.list_competitions(NOW, user_id=uuid4())

        assert mine.current_user_participating is True
        assert mine.current_user_score == 0.0
        assert mine.current_user_rank is None
        assert theirs.current_user_participating is False


class TestDetailsAndLeaderboard:
    """Test details and leaderboard views."""

    @pytest.mark.asyncio
    async def test_details_missing_competition(self, db_session):
        with pytest.raises(NotFoundError):
            await CompetitionService(db_session).get_competition_details(uuid4(), NOW)

    @pytest.mark.asyncio
    async def test_details_before_finalization(self, session_factory, ended_competition):
        async with session_factory() as session:
            details = await CompetitionService(session).get_competition_details(
                ended_competition.id, NOW
            )

        assert details.archive is None
        assert [p.total_score for p in details.participants] == [90.0, 70.0, 50.0, 10.0]
        assert details.competition.phase == CompetitionPhase.COMPLETED

    @pytest.mark.asyncio
    async def test_details_after_finalization(self, session_factory, ended_competition):
        async with session_factory() as session:
            await ArchiveService(session).finalize_competition(ended_competition.id, NOW)

        async with session_factory() as session:
            details = await CompetitionService(session).get_competition_details(
                ended_competition.id, NOW
            )

        assert details.archive is not None
        assert details.archive.participant_count == 3
        assert [p.overall_rank for p in details.participants] == [1, 2, 3, None]
        winner = details.participants[0]

        async with session_factory() as session:
            mine = await CompetitionService(session).get_competition_details(
                ended_competition.id, NOW, user_id=winner.user_id
            )
        assert mine.user_participation.user_id == winner.user_id
        assert mine.competition.current_user_rank == 1

    @pytest.mark.asyncio
    async def test_live_leaderboard_orders_by_score(self, session_factory, ended_competition):
        async with session_factory() as session:
            board = await CompetitionService(session).get_leaderboard(ended_competition.id, limit=2)

        assert board.total_participants == 3
        assert [(e.position, e.score) for e in board.leaderboard] == [(1, 90.0), (2, 50.0)]

    @pytest.mark.asyncio
    async def test_final_leaderboard_uses_final_ranks(self, session_factory, ended_competition):
        async with session_factory() as session:
            await ArchiveService(session).finalize_competition(ended_competition.id, NOW)

        async with session_factory() as session:
            board = await CompetitionService(session).get_leaderboard(ended_competition.id)

        assert [(e.position, e.score) for e in board.leaderboard] == [(1, 90.0), (2, 50.0), (3, 10.0)]

    @pytest.mark.asyncio
    async def test_leaderboard_missing_competition(self, db_session):
        with pytest.raises(NotFoundError):
            await CompetitionService(db_session).get_leaderboard(uuid4())


class TestParticipation:
    """Test join and leave."""

    @pytest.mark.asyncio
    async def test_join_is_idempotent(self, session_factory):
        competition = await store_competition(session_factory, CompetitionStatus.UPCOMING)
        user_id = uuid4()

        async with session_factory() as session:
            service = CompetitionService(session)
            first = await service.join_competition(competition.id, user_id, NOW)
            second = await service.join_competition(competition.id, user_id, NOW + timedelta(hours=1))

        assert first.id == second.id
        assert second.is_active is True
        assert second.enrolled_at == NOW.replace(tzinfo=None)

    @pytest.mark.asyncio
    async def test_rejoin_reactivates_enrollment(self, session_factory):
        competition = await store_competition(session_factory, CompetitionStatus.ACTIVE)
        user_id = uuid4()

        async with session_factory() as session:
            service = CompetitionService(session)
            joined = await service.join_competition(competition.id, user_id, NOW)
            left = await service.leave_competition(competition.id, user_id)
            assert left.is_active is False
            rejoined = await service.join_competition(competition.id, user_id, NOW)

        assert rejoined.id == joined.id
        assert rejoined.is_active is True

    @pytest.mark.asyncio
    async def test_full_competition_rejects_join(self, session_factory):
        competition = await store_competition(
            session_factory, CompetitionStatus.UPCOMING, max_participants=2
        )

        async with session_factory() as session:
            service = CompetitionService(session)
            await service.join_competition(competition.id, uuid4(), NOW)
            await service.join_competition(competition.id, uuid4(), NOW)
            with pytest.raises(CompetitionStateError):
                await service.join_competition(competition.id, uuid4(), NOW)

    @pytest.mark.asyncio
    async def test_left_participants_free_their_place(self, session_factory):
        competition = await store_competition(
            session_factory, CompetitionStatus.UPCOMING, max_participants=1
        )
        first, second = uuid4(), uuid4()

        async with session_factory() as session:
            service = CompetitionService(session)
            await service.join_competition(competition.id, first, NOW)
            await service.leave_competition(competition.id, first)
            joined = await service.join_competition(competition.id, second, NOW)

        assert joined.user_id == second

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [CompetitionStatus.COMPLETED, CompetitionStatus.CANCELLED])
    async def test_terminal_competition_rejects_join(self, session_factory, status):
        competition = await store_competition(session_factory, status)

        async with session_factory() as session:
            with pytest.raises(CompetitionStateError):
                await CompetitionService(session).join_competition(competition.id, uuid4(), NOW)

    @pytest.mark.asyncio
    async def test_join_missing_competition(self, db_session):
        with pytest.raises(NotFoundError):
            await CompetitionService(db_session).join_competition(uuid4(), uuid4(), NOW)

    @pytest.mark.asyncio
    async def test_leave_without_enrollment(self, session_factory):
        competition = await store_competition(session_factory, CompetitionStatus.ACTIVE)

        async with session_factory() as session:
            with pytest.raises(NotFoundError):
                await CompetitionService(session).leave_competition(competition.id, uuid4())
