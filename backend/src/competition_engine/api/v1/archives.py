"""Archive API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from competition_engine.api.deps import DbSession
from competition_engine.core.config import settings
from competition_engine.schemas.archive import ArchiveListResponse, ArchiveResponse
from competition_engine.services.archive_service import ArchiveService

router = APIRouter()


@router.get("", response_model=ArchiveListResponse)
async def list_archives(
    db: DbSession,
    limit: int = Query(settings.DEFAULT_LIST_LIMIT, ge=1, le=100),
):
    """Get archives, most recent first."""
    service = ArchiveService(db)
    archives = await service.get_recent_archives(limit)
    return ArchiveListResponse(
        archives=[ArchiveResponse.model_validate(a) for a in archives],
        total=len(archives),
    )


@router.get("/{season_id}", response_model=ArchiveResponse)
async def get_archive(season_id: UUID, db: DbSession):
    """Get the archive of one competition."""
    service = ArchiveService(db)
    archive = await service.get_archive(season_id)
    if not archive:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Archive for competition {season_id} not found",
        )
    return ArchiveResponse.model_validate(archive)
