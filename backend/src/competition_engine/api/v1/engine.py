"""Engine API endpoints: scheduling, status transitions, finalization.

All endpoints require the system key or an admin bearer token.
"""

from uuid import UUID

from fastapi import APIRouter

from competition_engine.api.deps import EngineDep, Now, PrivilegedCaller
from competition_engine.api.errors import http_error
from competition_engine.core.exceptions import CompetitionEngineError
from competition_engine.schemas.archive import ArchiveResponse
from competition_engine.schemas.engine import (
    AutoCreateResponse,
    CompleteCompetitionResponse,
    MaintenanceResponse,
    RewardSummaryResponse,
    SchedulerStatusResponse,
    StatusUpdateResponse,
)
from competition_engine.services.scheduler_service import AutoCreateResult
from competition_engine.services.status_service import StatusUpdateResult

router = APIRouter()


def _auto_create_response(result: AutoCreateResult) -> AutoCreateResponse:
    return AutoCreateResponse(
        created=result.created,
        skipped=result.skipped,
        failed=result.failed,
    )


def _status_update_response(result: StatusUpdateResult) -> StatusUpdateResponse:
    return StatusUpdateResponse(
        activated=result.activated,
        completed=result.completed,
        updated=result.completed,
        failed=result.failed,
    )


@router.post("/auto-create", response_model=AutoCreateResponse)
async def auto_create_competitions(engine: EngineDep, now: Now, caller: PrivilegedCaller):
    """Create the upcoming weekly, monthly and quarterly competitions."""
    result = await engine.auto_create_competitions(now)
    return _auto_create_response(result)


@router.post("/update-statuses", response_model=StatusUpdateResponse)
async def update_statuses(engine: EngineDep, now: Now, caller: PrivilegedCaller):
    """Activate started competitions and complete ended ones."""
    result = await engine.update_statuses(now)
    return _status_update_response(result)


@router.post("/competitions/{competition_id}/complete", response_model=CompleteCompetitionResponse)
async def complete_competition(
    competition_id: UUID,
    engine: EngineDep,
    now: Now,
    caller: PrivilegedCaller,
):
    """Finalize a competition now. Returns the stored archive if already finalized."""
    try:
        outcome = await engine.complete_competition(competition_id, now)
    except CompetitionEngineError as e:
        raise http_error(e)

    summary = None
    if outcome.reward_summary is not None:
        summary = RewardSummaryResponse(**outcome.reward_summary.to_dict())
    return CompleteCompetitionResponse(
        archive=ArchiveResponse.model_validate(outcome.archive),
        created=outcome.created,
        reward_summary=summary,
    )


@router.post("/maintenance", response_model=MaintenanceResponse)
async def run_maintenance(engine: EngineDep, now: Now, caller: PrivilegedCaller):
    """Run one full maintenance cycle: statuses first, then auto-creation."""
    result = await engine.run_maintenance_cycle(now)
    return MaintenanceResponse(
        statuses=_status_update_response(result.statuses),
        created=_auto_create_response(result.created),
        ran_at=result.ran_at,
    )


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(engine: EngineDep, now: Now, caller: PrivilegedCaller):
    """Competition counts grouped by stored status."""
    counts = await engine.get_status_counts()
    return SchedulerStatusResponse(
        statistics=counts,
        total=sum(counts.values()),
        checked_at=now,
    )
