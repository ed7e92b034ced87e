"""Translation of engine errors into HTTP errors."""

from fastapi import HTTPException, status

from competition_engine.core.exceptions import (
    CompetitionEngineError,
    CompetitionStateError,
    ConflictError,
    FinalizationError,
    InvalidInputError,
    NotFoundError,
)

_STATUS_CODES: list[tuple[type[CompetitionEngineError], int, str]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (InvalidInputError, status.HTTP_400_BAD_REQUEST, "INVALID_INPUT"),
    (ConflictError, status.HTTP_409_CONFLICT, "CONFLICT"),
    (CompetitionStateError, status.HTTP_409_CONFLICT, "INVALID_STATE"),
    (FinalizationError, status.HTTP_500_INTERNAL_SERVER_ERROR, "FINALIZATION_FAILED"),
]


def http_error(exc: CompetitionEngineError) -> HTTPException:
    for error_type, status_code, code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(
                status_code=status_code,
                detail={"code": code, "message": str(exc)},
            )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "ENGINE_ERROR", "message": str(exc)},
    )
