"""Competition API endpoints: listing, details, leaderboard, participation."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from competition_engine.api.deps import DbSession, Now, PrivilegedCaller
from competition_engine.api.errors import http_error
from competition_engine.core.config import settings
from competition_engine.core.exceptions import CompetitionEngineError
from competition_engine.models.competition import CompetitionStatus, CompetitionType
from competition_engine.schemas.competition import (
    CompetitionCreate,
    CompetitionDetailResponse,
    CompetitionListResponse,
    CompetitionSummary,
    LeaderboardResponse,
    ParticipantResponse,
    ParticipationRequest,
)
from competition_engine.services.competition_service import CompetitionService, build_summary

router = APIRouter()


@router.get("", response_model=CompetitionListResponse)
async def list_competitions(
    db: DbSession,
    now: Now,
    status_filter: CompetitionStatus | None = Query(None, alias="status"),
    type_filter: CompetitionType | None = Query(None, alias="type"),
    limit: int = Query(settings.DEFAULT_LIST_LIMIT, ge=1, le=100),
    user_id: UUID | None = Query(None),
):
    """List competitions with derived phase, progress and score stats."""
    service = CompetitionService(db)
    try:
        competitions = await service.list_competitions(
            now,
            status=status_filter,
            competition_type=type_filter.value if type_filter else None,
            limit=limit,
            user_id=user_id,
        )
    except CompetitionEngineError as e:
        raise http_error(e)
    return CompetitionListResponse(competitions=competitions, total=len(competitions))


@router.post("", response_model=CompetitionSummary, status_code=status.HTTP_201_CREATED)
async def create_competition(
    competition_data: CompetitionCreate,
    db: DbSession,
    now: Now,
    caller: PrivilegedCaller,
):
    """Create a custom competition (admin or system only)."""
    service = CompetitionService(db)
    try:
        competition = await service.create_competition(competition_data)
    except CompetitionEngineError as e:
        raise http_error(e)
    return build_summary(competition, [], now)


@router.get("/{competition_id}", response_model=CompetitionDetailResponse)
async def get_competition(
    competition_id: UUID,
    db: DbSession,
    now: Now,
    user_id: UUID | None = Query(None),
):
    """Get a competition with its participants and archive."""
    service = CompetitionService(db)
    try:
        return await service.get_competition_details(competition_id, now, user_id)
    except CompetitionEngineError as e:
        raise http_error(e)


@router.get("/{competition_id}/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    competition_id: UUID,
    db: DbSession,
    limit: int = Query(settings.DEFAULT_LIST_LIMIT, ge=1, le=100),
):
    """Get the active participants of a competition in rank order."""
    service = CompetitionService(db)
    try:
        return await service.get_leaderboard(competition_id, limit)
    except CompetitionEngineError as e:
        raise http_error(e)


@router.post("/{competition_id}/join", response_model=ParticipantResponse)
async def join_competition(
    competition_id: UUID,
    request: ParticipationRequest,
    db: DbSession,
    now: Now,
):
    """Enroll a user; joining again after leaving reactivates the enrollment."""
    service = CompetitionService(db)
    try:
        participant = await service.join_competition(competition_id, request.user_id, now)
    except CompetitionEngineError as e:
        raise http_error(e)
    return ParticipantResponse.model_validate(participant)


@router.post("/{competition_id}/leave", response_model=ParticipantResponse)
async def leave_competition(
    competition_id: UUID,
    request: ParticipationRequest,
    db: DbSession,
):
    """Leave a competition. The enrollment is kept as inactive."""
    service = CompetitionService(db)
    try:
        participant = await service.leave_competition(competition_id, request.user_id)
    except CompetitionEngineError as e:
        raise http_error(e)
    return ParticipantResponse.model_validate(participant)
