"""Competition engine: the entry points behind the admin API and the timer."""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from competition_engine.services.archive_service import ArchiveService, FinalizeOutcome
from competition_engine.services.notification_service import NotificationDispatcher
from competition_engine.services.scheduler_service import AutoCreateResult, SchedulerService
from competition_engine.services.status_service import StatusService, StatusUpdateResult

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceResult:
    statuses: StatusUpdateResult
    created: AutoCreateResult
    ran_at: datetime


class CompetitionEngine:
    """Wires the scheduler, status transitioner and archiver to one session.

    Holds no state of its own; ``now`` is always passed in by the caller.
    """

    def __init__(self, db: AsyncSession, notifier: NotificationDispatcher | None = None):
        self.db = db
        self.archive_service = ArchiveService(db, notifier)
        self.status_service = StatusService(db, self.archive_service)
        self.scheduler_service = SchedulerService(db)

    async def auto_create_competitions(self, now: datetime) -> AutoCreateResult:
        result = await self.scheduler_service.auto_create_competitions(now)
        if result.failed:
            logger.warning(f"Auto-create failed for: {', '.join(result.failed)}")
        return result

    async def update_statuses(self, now: datetime) -> StatusUpdateResult:
        return await self.status_service.update_statuses(now)

    async def complete_competition(self, competition_id: UUID, now: datetime) -> FinalizeOutcome:
        """Finalize one competition now, whatever its end date.

        Returns the existing archive when it was already finalized.
        """
        return await self.archive_service.finalize_competition(competition_id, now)

    async def get_status_counts(self) -> dict[str, int]:
        return await self.scheduler_service.get_status_counts()

    async def run_maintenance_cycle(self, now: datetime) -> MaintenanceResult:
        """One scheduler tick: advance statuses, then create upcoming competitions."""
        logger.info("Running competition maintenance cycle")
        statuses = await self.update_statuses(now)
        created = await self.auto_create_competitions(now)
        logger.info(
            f"Maintenance cycle done: {statuses.activated} activated, "
            f"{statuses.completed} completed, {len(created.created)} created"
        )
        return MaintenanceResult(statuses=statuses, created=created, ran_at=now)
