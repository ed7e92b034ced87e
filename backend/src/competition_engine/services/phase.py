"""Phase calculator: pure functions over stored dates, status and ``now``.

Nothing here touches the database or reads the clock, so list and detail
endpoints can call it freely.
"""

import math
from datetime import datetime, timedelta
from typing import Protocol

from competition_engine.core.clock import ensure_utc
from competition_engine.models.competition import CompetitionPhase, CompetitionStatus

ENDING_SOON_WINDOW = timedelta(hours=24)


class Schedulable(Protocol):
    status: str
    start_date: datetime
    end_date: datetime
    registration_end_date: datetime | None


def determine_phase(competition: Schedulable, now: datetime) -> CompetitionPhase:
    """Derive the display phase of a competition.

    Rules are evaluated in order, first match wins:

    1. stored status CANCELLED -> ARCHIVED
    2. stored status COMPLETED, or ``now`` past the end date -> COMPLETED
    3. registration end configured and not reached -> REGISTRATION
    4. before the start date -> PRE_START
    5. at most 24 hours left -> ENDING_SOON
    6. otherwise ACTIVE
    """
    now = ensure_utc(now)
    start = ensure_utc(competition.start_date)
    end = ensure_utc(competition.end_date)

    if competition.status == CompetitionStatus.CANCELLED.value:
        return CompetitionPhase.ARCHIVED
    if competition.status == CompetitionStatus.COMPLETED.value or now > end:
        return CompetitionPhase.COMPLETED

    if competition.registration_end_date is not None:
        if now < ensure_utc(competition.registration_end_date):
            return CompetitionPhase.REGISTRATION

    if now < start:
        return CompetitionPhase.PRE_START

    remaining = end - now
    if timedelta(0) < remaining <= ENDING_SOON_WINDOW:
        return CompetitionPhase.ENDING_SOON

    return CompetitionPhase.ACTIVE


def calculate_progress(start_date: datetime, end_date: datetime, now: datetime) -> int:
    """Elapsed share of the competition window as an integer percentage.

    Halves round up. A zero-length window is 100 once started.
    """
    now = ensure_utc(now)
    start = ensure_utc(start_date)
    end = ensure_utc(end_date)

    if now >= end and now >= start:
        return 100
    if now <= start:
        return 0

    elapsed = (now - start).total_seconds()
    total = (end - start).total_seconds()
    progress = math.floor(100 * elapsed / total + 0.5)
    return max(0, min(100, progress))


def calculate_time_remaining(end_date: datetime, now: datetime) -> str | None:
    """Human readable time left until ``end_date``; None once it has passed."""
    remaining = ensure_utc(end_date) - ensure_utc(now)
    if remaining <= timedelta(0):
        return None

    total_seconds = int(remaining.total_seconds())
    days, rest = divmod(total_seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60

    if days > 1:
        return f"{days} days"
    if days == 1:
        return f"1 day {hours}h"
    if hours > 1:
        return f"{hours} hours"
    if hours == 1:
        return f"1 hour {minutes}m"
    return f"{minutes} minutes"
