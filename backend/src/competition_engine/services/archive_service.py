"""Archive service: finalize a competition exactly once.

Finalization runs in a single transaction on the caller's session:

1. lock the competition row (SELECT ... FOR UPDATE)
2. an existing archive means the work is done; return it
3. rank active participants and resolve reward grants
4. apply grants, each write in its own savepoint
5. store final ranks, insert the archive (unique ``season_id``)
6. move status to COMPLETED only if it is still UPCOMING or ACTIVE
7. commit, then queue notifications outside the transaction

Any failure before the commit rolls everything back, leaving the
competition non-terminal so the next maintenance tick can retry.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from competition_engine.core.clock import to_db_time
from competition_engine.core.exceptions import (
    CompetitionStateError,
    FinalizationError,
    NotFoundError,
)
from competition_engine.middleware.metrics import record_finalization
from competition_engine.models.archive import CompetitionArchive
from competition_engine.models.competition import (
    OPEN_STATUSES,
    Competition,
    CompetitionStatus,
)
from competition_engine.models.participant import Participant
from competition_engine.schemas.reward import parse_rewards
from competition_engine.services.notification_service import NotificationDispatcher
from competition_engine.services.ranking_service import (
    FinalRankings,
    build_season_stats,
    rank_participants,
    resolve_reward_grants,
)
from competition_engine.services.reward_service import RewardService, RewardSummary

logger = logging.getLogger(__name__)

ARCHIVE_VERSION = 1


@dataclass
class FinalizeOutcome:
    archive: CompetitionArchive
    created: bool
    reward_summary: RewardSummary | None = None


class ArchiveService:
    """Service class for archive and finalization operations."""

    def __init__(self, db: AsyncSession, notifier: NotificationDispatcher | None = None):
        self.db = db
        self.notifier = notifier
        self.reward_service = RewardService(db)

    async def get_archive(self, season_id: UUID) -> CompetitionArchive | None:
        result = await self.db.execute(
            select(CompetitionArchive).where(CompetitionArchive.season_id == season_id)
        )
        return result.scalar_one_or_none()

    async def get_recent_archives(self, limit: int = 20) -> list[CompetitionArchive]:
        """Get archives, most recently archived first."""
        result = await self.db.execute(
            select(CompetitionArchive)
            .order_by(CompetitionArchive.archived_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def finalize_competition(self, competition_id: UUID, now: datetime) -> FinalizeOutcome:
        """Rank, reward, archive and complete a competition.

        Safe to call repeatedly or concurrently: only the first call writes
        anything, later calls return the stored archive with created=False.

        Raises:
            NotFoundError: competition does not exist
            CompetitionStateError: competition was cancelled
            FinalizationError: ranking, grants or archive write failed
        """
        started = time.perf_counter()
        try:
            outcome, competition, rankings = await self._finalize_in_transaction(
                competition_id, now
            )
        except (NotFoundError, CompetitionStateError):
            await self.db.rollback()
            raise
        except IntegrityError:
            # A concurrent finalizer inserted the archive first
            await self.db.rollback()
            try:
                archive = await self.get_archive(competition_id)
            except Exception as e:
                record_finalization("failed")
                logger.error(f"Error loading archive of competition {competition_id}: {e}")
                raise FinalizationError(competition_id, str(e)) from e
            if archive is None:
                record_finalization("failed")
                raise FinalizationError(competition_id, "archive insert conflicted")
            logger.info(f"Competition {competition_id} was finalized concurrently, skipping")
            record_finalization("skipped")
            return FinalizeOutcome(archive=archive, created=False)
        except Exception as e:
            await self.db.rollback()
            record_finalization("failed")
            logger.error(f"Error finalizing competition {competition_id}: {e}")
            raise FinalizationError(competition_id, str(e)) from e

        if not outcome.created:
            record_finalization("skipped")
            return outcome

        record_finalization("created", time.perf_counter() - started)
        logger.info(
            f"Completed competition {competition.name}: "
            f"{rankings.total_participants} ranked, "
            f"{outcome.reward_summary.successful_distributions} rewards granted"
        )

        await self._notify(competition, rankings, outcome.reward_summary, now)
        return outcome

    async def _finalize_in_transaction(
        self, competition_id: UUID, now: datetime
    ) -> tuple[FinalizeOutcome, Competition, FinalRankings | None]:
        result = await self.db.execute(
            select(Competition)
            .where(Competition.id == competition_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        competition = result.scalar_one_or_none()
        if competition is None:
            raise NotFoundError(f"Competition {competition_id} not found")

        existing = await self.get_archive(competition_id)
        if existing is not None:
            if competition.status in OPEN_STATUSES:
                # Archive committed without its status flip; finish the flip only
                await self._mark_completed(competition_id)
                logger.warning(f"Repaired status of archived competition {competition_id}")
            await self.db.commit()
            return FinalizeOutcome(archive=existing, created=False), competition, None

        if competition.status == CompetitionStatus.CANCELLED.value:
            raise CompetitionStateError(f"Competition {competition_id} is cancelled")

        participants_result = await self.db.execute(
            select(Participant)
            .where(Participant.competition_id == competition_id)
            .execution_options(populate_existing=True)
        )
        participants = list(participants_result.scalars().all())

        rankings = rank_participants(participants)
        grants = resolve_reward_grants(
            parse_rewards(competition.rewards), rankings, competition.display_name
        )
        summary = await self.reward_service.apply_grants(grants, competition.id, now)

        final_ranks = {p.participant_id: p.final_rank for p in rankings.participants}
        for participant in participants:
            if participant.id in final_ranks:
                participant.overall_rank = final_ranks[participant.id]

        archive = CompetitionArchive(
            season_id=competition.id,
            season_name=competition.display_name,
            season_type=competition.type,
            start_date=competition.start_date,
            end_date=competition.end_date,
            final_rankings=[p.to_snapshot() for p in rankings.participants],
            participant_count=rankings.total_participants,
            rewards_distributed=[r.to_record() for r in summary.results],
            season_stats=build_season_stats(len(participants), rankings),
            archived_at=to_db_time(now),
            archive_version=ARCHIVE_VERSION,
        )
        self.db.add(archive)
        await self.db.flush()

        await self._mark_completed(competition_id)
        await self.db.commit()

        set_committed_value(competition, "status", CompetitionStatus.COMPLETED.value)
        outcome = FinalizeOutcome(archive=archive, created=True, reward_summary=summary)
        return outcome, competition, rankings

    async def _mark_completed(self, competition_id: UUID) -> None:
        await self.db.execute(
            update(Competition)
            .where(
                Competition.id == competition_id,
                Competition.status.in_(OPEN_STATUSES),
            )
            .values(status=CompetitionStatus.COMPLETED.value)
            .execution_options(synchronize_session=False)
        )

    async def _notify(
        self,
        competition: Competition,
        rankings: FinalRankings,
        summary: RewardSummary,
        now: datetime,
    ) -> None:
        if self.notifier is None:
            return
        try:
            sent, failed = await self.notifier.notify_competition_completed(
                competition, rankings, summary, now
            )
        except Exception as e:
            logger.warning(f"Notification dispatch failed for competition {competition.id}: {e}")
            return
        summary.notifications_sent = sent
        summary.notifications_failed = failed
