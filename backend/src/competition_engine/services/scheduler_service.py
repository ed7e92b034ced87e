"""Scheduler service: creates upcoming recurring competitions ahead of time.

Each cadence maps ``now`` to one or more calendar windows with a canonical
name. The unique ``competitions.name`` constraint makes creation
idempotent: a name that already exists, or that a concurrent scheduler
inserts first, is skipped.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from competition_engine.core.clock import ensure_utc
from competition_engine.core.exceptions import ConflictError
from competition_engine.models.competition import Competition, CompetitionType
from competition_engine.schemas.competition import CompetitionCreate
from competition_engine.services.competition_service import CompetitionService

logger = logging.getLogger(__name__)

WEEKLY_LOOKAHEAD = 2


@dataclass(frozen=True)
class CompetitionWindow:
    name: str
    display_name: str
    description: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class CadenceTemplate:
    """Everything a recurring competition copies from its cadence."""

    type: CompetitionType
    registration_opens_days: int
    registration_closes_days: int
    max_participants: int
    min_participants: int
    rewards: dict[str, Any]
    scoring_categories: dict[str, float]
    max_score: int

    def build(self, window: CompetitionWindow) -> CompetitionCreate:
        return CompetitionCreate(
            name=window.name,
            display_name=window.display_name,
            description=window.description,
            type=self.type,
            start_date=window.start,
            end_date=window.end,
            registration_start_date=window.start - timedelta(days=self.registration_opens_days),
            registration_end_date=window.start - timedelta(days=self.registration_closes_days),
            min_participants=self.min_participants,
            max_participants=self.max_participants,
            included_categories=list(self.scoring_categories),
            rewards=self.rewards,
            scoring_rules={
                "categories": {
                    category: {"weight": weight, "max_score": self.max_score}
                    for category, weight in self.scoring_categories.items()
                }
            },
            is_public=True,
            auto_enroll=False,
        )


WEEKLY_TEMPLATE = CadenceTemplate(
    type=CompetitionType.WEEKLY,
    registration_opens_days=3,
    registration_closes_days=1,
    max_participants=50,
    min_participants=5,
    rewards={
        "tiers": [
            {"place": 1, "reward": "Weekly Champion Badge", "type": "badge", "value": 100},
            {"place": 2, "reward": "Weekly Silver", "type": "points", "value": 50},
            {"place": 3, "reward": "Weekly Bronze", "type": "points", "value": 25},
        ],
        "participation": {"reward": "Participation Badge", "type": "badge", "value": 10},
    },
    scoring_categories={
        "MOST_ACTIVE": 0.4,
        "BIGGEST_CATCH": 0.4,
        "SOCIAL_BUTTERFLY": 0.2,
    },
    max_score=100,
)

MONTHLY_TEMPLATE = CadenceTemplate(
    type=CompetitionType.MONTHLY,
    registration_opens_days=7,
    registration_closes_days=1,
    max_participants=200,
    min_participants=20,
    rewards={
        "tiers": [
            {"place": 1, "reward": "Monthly Champion Trophy", "type": "trophy", "value": 500},
            {"place": 2, "reward": "Monthly Silver Medal", "type": "medal", "value": 300},
            {"place": 3, "reward": "Monthly Bronze Medal", "type": "medal", "value": 200},
            {"place": [4, 10], "reward": "Top 10 Badge", "type": "badge", "value": 100},
        ],
        "participation": {"reward": "Monthly Participant", "type": "badge", "value": 50},
    },
    scoring_categories={
        "MONTHLY_CHAMPIONS": 0.25,
        "MOST_ACTIVE": 0.20,
        "BIGGEST_CATCH": 0.20,
        "BEST_MENTOR": 0.15,
        "TECHNIQUE_MASTER": 0.10,
        "SPECIES_SPECIALIST": 0.10,
    },
    max_score=200,
)

QUARTERLY_TEMPLATE = CadenceTemplate(
    type=CompetitionType.QUARTERLY,
    registration_opens_days=14,
    registration_closes_days=3,
    max_participants=500,
    min_participants=50,
    rewards={
        "tiers": [
            {"place": 1, "reward": "Grand Champion Crown", "type": "crown", "value": 2000},
            {"place": 2, "reward": "Grand Silver Trophy", "type": "trophy", "value": 1200},
            {"place": 3, "reward": "Grand Bronze Trophy", "type": "trophy", "value": 800},
            {"place": [4, 10], "reward": "Elite Competitor Badge", "type": "badge", "value": 400},
            {"place": [11, 25], "reward": "Strong Competitor Badge", "type": "badge", "value": 200},
        ],
        "participation": {"reward": "Quarterly Participant", "type": "badge", "value": 100},
    },
    scoring_categories={
        "MONTHLY_CHAMPIONS": 0.20,
        "BIGGEST_CATCH": 0.15,
        "MOST_ACTIVE": 0.15,
        "BEST_MENTOR": 0.15,
        "TECHNIQUE_MASTER": 0.10,
        "SPECIES_SPECIALIST": 0.10,
        "CONSISTENCY_KING": 0.10,
        "VETERAN_ANGLER": 0.05,
    },
    max_score=300,
)


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def weekly_windows(now: datetime, count: int = WEEKLY_LOOKAHEAD) -> list[CompetitionWindow]:
    """The next ``count`` Monday-to-Sunday weeks after the current one."""
    now = ensure_utc(now)
    windows = []
    for offset in range(1, count + 1):
        day = now + timedelta(weeks=offset)
        start = _start_of_day(day - timedelta(days=day.weekday()))
        end = start + timedelta(days=7) - timedelta(microseconds=1)
        windows.append(
            CompetitionWindow(
                name=f"week_{start:%Y_%m_%d}",
                display_name=f"Weekly Challenge - {start:%b %d}",
                description=f"Weekly challenge from {start:%b %d} to {end:%b %d, %Y}",
                start=start,
                end=end,
            )
        )
    return windows


def monthly_window(now: datetime) -> CompetitionWindow:
    """The calendar month after the current one."""
    now = ensure_utc(now)
    year, month = _add_months(now.year, now.month, 1)
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(*_add_months(year, month, 1), 1, tzinfo=timezone.utc) - timedelta(microseconds=1)
    return CompetitionWindow(
        name=f"month_{year:04d}_{month:02d}",
        display_name=f"{start:%B %Y} Championship",
        description=f"Monthly championship for {start:%B %Y}",
        start=start,
        end=end,
    )


def quarterly_window(now: datetime) -> CompetitionWindow:
    """The calendar quarter after the current one."""
    now = ensure_utc(now)
    current_quarter_month = 3 * ((now.month - 1) // 3) + 1
    year, month = _add_months(now.year, current_quarter_month, 3)
    quarter = (month - 1) // 3 + 1
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(*_add_months(year, month, 3), 1, tzinfo=timezone.utc) - timedelta(microseconds=1)
    return CompetitionWindow(
        name=f"quarter_{year:04d}_{quarter}",
        display_name=f"Q{quarter} {year} Grand Championship",
        description=f"Quarterly grand championship for Q{quarter} {year}",
        start=start,
        end=end,
    )


def plan_competitions(now: datetime) -> list[CompetitionCreate]:
    """All recurring competitions that should exist for ``now``."""
    planned = [WEEKLY_TEMPLATE.build(window) for window in weekly_windows(now)]
    planned.append(MONTHLY_TEMPLATE.build(monthly_window(now)))
    planned.append(QUARTERLY_TEMPLATE.build(quarterly_window(now)))
    return planned


@dataclass
class AutoCreateResult:
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class SchedulerService:
    """Service class for recurring competition creation."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.competition_service = CompetitionService(db)

    async def auto_create_competitions(self, now: datetime) -> AutoCreateResult:
        """Create every planned competition whose name does not exist yet.

        Each entry is committed on its own; one failure does not stop the rest.
        """
        result = AutoCreateResult()

        for data in plan_competitions(now):
            try:
                if await self._name_taken(data.name):
                    result.skipped.append(data.name)
                    continue
                await self.competition_service.create_competition(data)
            except ConflictError:
                logger.debug(f"Competition {data.name} already exists, skipping")
                result.skipped.append(data.name)
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Error creating competition {data.name}: {e}")
                result.failed.append(data.name)
            else:
                logger.info(f"Created {data.type.value} competition: {data.display_name}")
                result.created.append(data.name)

        return result

    async def _name_taken(self, name: str) -> bool:
        existing = await self.db.execute(select(Competition.id).where(Competition.name == name))
        return existing.scalar_one_or_none() is not None

    async def get_status_counts(self) -> dict[str, int]:
        """Number of competitions per stored status."""
        result = await self.db.execute(
            select(Competition.status, func.count(Competition.id)).group_by(Competition.status)
        )
        return {status: count for status, count in result.all()}
