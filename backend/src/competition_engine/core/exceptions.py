"""Engine error types.

Routes translate these into HTTP errors; batch operations catch them per item
and report counts instead of raising.
"""


class CompetitionEngineError(Exception):
    """Base class for engine errors."""


class NotFoundError(CompetitionEngineError):
    """Referenced competition, participant or archive does not exist."""


class InvalidInputError(CompetitionEngineError):
    """Malformed input; the operation was not attempted."""


class CompetitionStateError(CompetitionEngineError):
    """Operation is not allowed in the competition's current status."""


class FinalizationError(CompetitionEngineError):
    """Ranking, archive write or status update failed.

    The transaction has been rolled back, so the competition is still
    non-terminal and the finalization can be retried.
    """

    def __init__(self, competition_id, message: str):
        super().__init__(f"Finalization of competition {competition_id} failed: {message}")
        self.competition_id = competition_id


class ConflictError(CompetitionEngineError):
    """A unique key (competition name, enrollment) is already taken."""
