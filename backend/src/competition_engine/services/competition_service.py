"""Competition service for read, create and participation operations."""

import logging
from collections import defaultdict
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from competition_engine.core.clock import to_db_time
from competition_engine.core.exceptions import (
    CompetitionStateError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from competition_engine.middleware.metrics import record_competition_created
from competition_engine.models.archive import CompetitionArchive
from competition_engine.models.competition import (
    TERMINAL_STATUSES,
    Competition,
    CompetitionStatus,
    CompetitionType,
)
from competition_engine.models.participant import Participant
from competition_engine.schemas.archive import ArchiveResponse
from competition_engine.schemas.competition import (
    CompetitionCreate,
    CompetitionDetailResponse,
    CompetitionStats,
    CompetitionSummary,
    LeaderboardEntry,
    LeaderboardResponse,
    ParticipantResponse,
)
from competition_engine.schemas.reward import ScoringRules, parse_rewards
from competition_engine.services.phase import (
    calculate_progress,
    calculate_time_remaining,
    determine_phase,
)
from competition_engine.services.ranking_service import round_half_up

logger = logging.getLogger(__name__)

# UPCOMING first, CANCELLED (and anything unknown) last
STATUS_ORDER = case(
    (Competition.status == CompetitionStatus.UPCOMING.value, 0),
    (Competition.status == CompetitionStatus.ACTIVE.value, 1),
    (Competition.status == CompetitionStatus.COMPLETED.value, 2),
    else_=3,
)


def build_competition(data: CompetitionCreate) -> Competition:
    """Map a validated creation request onto a new UPCOMING competition row."""
    return Competition(
        name=data.name,
        display_name=data.display_name,
        description=data.description,
        type=data.type.value,
        status=CompetitionStatus.UPCOMING.value,
        start_date=to_db_time(data.start_date),
        end_date=to_db_time(data.end_date),
        registration_start_date=(
            to_db_time(data.registration_start_date) if data.registration_start_date else None
        ),
        registration_end_date=(
            to_db_time(data.registration_end_date) if data.registration_end_date else None
        ),
        min_participants=data.min_participants,
        max_participants=data.max_participants,
        included_categories=list(data.included_categories),
        rewards=data.rewards.model_dump(mode="json", exclude_none=True),
        scoring_rules=(
            data.scoring_rules.model_dump(mode="json") if data.scoring_rules else None
        ),
        is_public=data.is_public,
        auto_enroll=data.auto_enroll,
    )


def compute_stats(participants: list[Participant]) -> CompetitionStats:
    """Score statistics over every enrollment, including inactive ones."""
    scores = [float(p.total_score or 0) for p in participants]
    total = sum(scores)
    average = total / len(scores) if scores else 0.0
    return CompetitionStats(
        participant_count=len(scores),
        total_score=round_half_up(total),
        average_score=round_half_up(average, 2),
        top_score=max(scores, default=0.0),
    )


def build_summary(
    competition: Competition,
    participants: list[Participant],
    now: datetime,
    user_id: UUID | None = None,
) -> CompetitionSummary:
    """Competition row plus derived phase, progress and score statistics."""
    participation = None
    if user_id is not None:
        participation = next((p for p in participants if p.user_id == user_id), None)

    return CompetitionSummary(
        id=competition.id,
        name=competition.name,
        display_name=competition.display_name,
        description=competition.description,
        type=competition.type,
        status=competition.status,
        start_date=competition.start_date,
        end_date=competition.end_date,
        registration_start_date=competition.registration_start_date,
        registration_end_date=competition.registration_end_date,
        min_participants=competition.min_participants,
        max_participants=competition.max_participants,
        included_categories=competition.included_categories or [],
        rewards=parse_rewards(competition.rewards) if competition.rewards else None,
        scoring_rules=(
            ScoringRules.model_validate(competition.scoring_rules)
            if competition.scoring_rules
            else None
        ),
        is_public=competition.is_public,
        auto_enroll=competition.auto_enroll,
        phase=determine_phase(competition, now),
        time_remaining=calculate_time_remaining(competition.end_date, now),
        progress=calculate_progress(competition.start_date, competition.end_date, now),
        stats=compute_stats(participants),
        current_user_participating=participation is not None,
        current_user_rank=participation.overall_rank if participation else None,
        current_user_score=float(participation.total_score) if participation else None,
    )


class CompetitionService:
    """Service class for competition operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_competition_by_id(self, competition_id: UUID) -> Competition | None:
        result = await self.db.execute(
            select(Competition).where(Competition.id == competition_id)
        )
        return result.scalar_one_or_none()

    async def create_competition(self, data: CompetitionCreate) -> Competition:
        """Create and commit a new competition.

        Raises:
            ConflictError: a competition with this name already exists
        """
        competition = build_competition(data)
        self.db.add(competition)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(f"Competition {data.name} already exists") from e

        record_competition_created(competition.type)
        return competition

    async def list_competitions(
        self,
        now: datetime,
        status: CompetitionStatus | None = None,
        competition_type: str | None = None,
        limit: int = 20,
        user_id: UUID | None = None,
    ) -> list[CompetitionSummary]:
        """List competitions with phase and stats, by status then newest start.

        Args:
            now: Current time
            status: Filter by stored status
            competition_type: Filter by type
            limit: Maximum number of competitions
            user_id: Include this user's participation in each summary

        Returns:
            List of competition summaries

        Raises:
            InvalidInputError: Unknown status or competition type
        """
        query = select(Competition)
        try:
            if status is not None:
                query = query.where(Competition.status == CompetitionStatus(status).value)
            if competition_type is not None:
                query = query.where(Competition.type == CompetitionType(competition_type).value)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e
        query = query.order_by(STATUS_ORDER, Competition.start_date.desc()).limit(limit)

        result = await self.db.execute(query)
        competitions = list(result.scalars().all())
        if not competitions:
            return []

        participants_result = await self.db.execute(
            select(Participant).where(
                Participant.competition_id.in_([c.id for c in competitions])
            )
        )
        by_competition: dict[UUID, list[Participant]] = defaultdict(list)
        for participant in participants_result.scalars().all():
            by_competition[participant.competition_id].append(participant)

        return [
            build_summary(c, by_competition.get(c.id, []), now, user_id)
            for c in competitions
        ]

    async def get_competition_details(
        self, competition_id: UUID, now: datetime, user_id: UUID | None = None
    ) -> CompetitionDetailResponse:
        """Competition with participants (ranked first) and its archive."""
        competition = await self.get_competition_by_id(competition_id)
        if competition is None:
            raise NotFoundError(f"Competition {competition_id} not found")

        result = await self.db.execute(
            select(Participant)
            .where(Participant.competition_id == competition_id)
            .order_by(
                Participant.overall_rank.is_(None),
                Participant.overall_rank.asc(),
                Participant.total_score.desc(),
            )
        )
        participants = list(result.scalars().all())

        archive_result = await self.db.execute(
            select(CompetitionArchive)
            .where(CompetitionArchive.season_id == competition_id)
            .order_by(CompetitionArchive.archived_at.desc())
            .limit(1)
        )
        archive = archive_result.scalar_one_or_none()

        participant_responses = [ParticipantResponse.model_validate(p) for p in participants]
        user_participation = None
        if user_id is not None:
            user_participation = next(
                (p for p in participant_responses if p.user_id == user_id), None
            )

        return CompetitionDetailResponse(
            competition=build_summary(competition, participants, now, user_id),
            participants=participant_responses,
            user_participation=user_participation,
            archive=ArchiveResponse.model_validate(archive) if archive else None,
        )

    async def get_leaderboard(self, competition_id: UUID, limit: int = 20) -> LeaderboardResponse:
        """Active participants by final rank, or by live score before ranking."""
        competition = await self.get_competition_by_id(competition_id)
        if competition is None:
            raise NotFoundError(f"Competition {competition_id} not found")

        active = and_(
            Participant.competition_id == competition_id,
            Participant.is_active.is_(True),
        )
        result = await self.db.execute(
            select(Participant)
            .where(active)
            .order_by(
                Participant.overall_rank.is_(None),
                Participant.overall_rank.asc(),
                Participant.total_score.desc(),
                Participant.enrolled_at.asc(),
            )
            .limit(limit)
        )
        participants = list(result.scalars().all())

        total = await self.db.scalar(select(func.count(Participant.id)).where(active))

        return LeaderboardResponse(
            competition_id=competition_id,
            leaderboard=[
                LeaderboardEntry(
                    position=p.overall_rank or index,
                    user_id=p.user_id,
                    score=float(p.total_score),
                    category_scores=p.category_scores or {},
                )
                for index, p in enumerate(participants, start=1)
            ],
            total_participants=total or 0,
        )

    async def join_competition(
        self, competition_id: UUID, user_id: UUID, now: datetime
    ) -> Participant:
        """Enroll a user, reactivating an earlier enrollment if there is one.

        Raises:
            NotFoundError: competition does not exist
            CompetitionStateError: competition is finished or full
        """
        competition = await self.get_competition_by_id(competition_id)
        if competition is None:
            raise NotFoundError(f"Competition {competition_id} not found")
        if competition.status in TERMINAL_STATUSES:
            raise CompetitionStateError(
                f"Competition {competition_id} is {competition.status.lower()}"
            )

        participant = await self._get_participant(competition_id, user_id)
        if participant is not None and participant.is_active:
            return participant

        if competition.max_participants is not None:
            active_count = await self.db.scalar(
                select(func.count(Participant.id)).where(
                    Participant.competition_id == competition_id,
                    Participant.is_active.is_(True),
                )
            )
            if (active_count or 0) >= competition.max_participants:
                raise CompetitionStateError(f"Competition {competition_id} is full")

        if participant is not None:
            participant.is_active = True
        else:
            participant = Participant(
                competition_id=competition_id,
                user_id=user_id,
                enrolled_at=to_db_time(now),
            )
            self.db.add(participant)

        try:
            await self.db.commit()
        except IntegrityError:
            # Concurrent join of the same user
            await self.db.rollback()
            participant = await self._get_participant(competition_id, user_id)
            if participant is None:
                raise
        logger.info(f"User {user_id} joined competition {competition_id}")
        return participant

    async def leave_competition(self, competition_id: UUID, user_id: UUID) -> Participant:
        """Soft-leave: the enrollment is kept with is_active=False."""
        participant = await self._get_participant(competition_id, user_id)
        if participant is None:
            raise NotFoundError(
                f"User {user_id} is not enrolled in competition {competition_id}"
            )
        participant.is_active = False
        await self.db.commit()
        logger.info(f"User {user_id} left competition {competition_id}")
        return participant

    async def _get_participant(self, competition_id: UUID, user_id: UUID) -> Participant | None:
        result = await self.db.execute(
            select(Participant).where(
                Participant.competition_id == competition_id,
                Participant.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()
