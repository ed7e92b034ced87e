"""Status transitioner: moves stored status forward as time passes."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from competition_engine.core.clock import to_db_time
from competition_engine.core.exceptions import CompetitionEngineError
from competition_engine.models.competition import Competition, CompetitionStatus
from competition_engine.services.archive_service import ArchiveService

logger = logging.getLogger(__name__)


@dataclass
class StatusUpdateResult:
    activated: int = 0
    completed: int = 0
    failed: list[UUID] = field(default_factory=list)


class StatusService:
    """Service class for competition status transitions."""

    def __init__(self, db: AsyncSession, archive_service: ArchiveService):
        self.db = db
        self.archive_service = archive_service

    async def activate_due(self, now: datetime) -> int:
        """UPCOMING competitions whose start has passed become ACTIVE.

        Returns:
            Number of competitions activated
        """
        result = await self.db.execute(
            update(Competition)
            .where(
                Competition.status == CompetitionStatus.UPCOMING.value,
                Competition.start_date <= to_db_time(now),
            )
            .values(status=CompetitionStatus.ACTIVE.value)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def get_due_for_completion(self, now: datetime) -> list[UUID]:
        """Ids of ACTIVE competitions whose end has passed, oldest end first."""
        result = await self.db.execute(
            select(Competition.id)
            .where(
                Competition.status == CompetitionStatus.ACTIVE.value,
                Competition.end_date <= to_db_time(now),
            )
            .order_by(Competition.end_date.asc())
        )
        return list(result.scalars().all())

    async def complete_due(self, now: datetime) -> StatusUpdateResult:
        """Finalize every ended ACTIVE competition, one at a time.

        A failing competition is logged and reported; the rest still run.
        """
        result = StatusUpdateResult()
        for competition_id in await self.get_due_for_completion(now):
            try:
                outcome = await self.archive_service.finalize_competition(competition_id, now)
            except CompetitionEngineError as e:
                logger.error(f"Error completing competition {competition_id}: {e}")
                result.failed.append(competition_id)
                continue
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Unexpected error completing competition {competition_id}: {e}")
                result.failed.append(competition_id)
                continue
            if outcome.created:
                result.completed += 1
        return result

    async def update_statuses(self, now: datetime) -> StatusUpdateResult:
        """Activate started competitions, then complete ended ones."""
        activated = await self.activate_due(now)
        if activated:
            logger.info(f"Activated {activated} competitions")

        result = await self.complete_due(now)
        result.activated = activated
        if result.completed or result.failed:
            logger.info(
                f"Completed {result.completed} competitions, {len(result.failed)} failed"
            )
        return result
