"""Seed data script for development and testing.

Creates:
- the scheduled weekly, monthly and quarterly competitions
- 1 custom competition that is already running, ending after
  SEED_DURATION_MINUTES, with SEED_PARTICIPANTS random participants

Environment Variables:
    SEED_DURATION_MINUTES: Remaining duration of the custom competition (default: 20)
    SEED_PARTICIPANTS: Number of participants to enroll (default: 30)

Usage:
    cd backend && python -m scripts.seed_data

Once the custom competition has ended, the maintenance loop (or
POST /api/v1/engine/update-statuses) finalizes and archives it.
"""

import asyncio
import os
import random
import uuid
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from competition_engine.core.clock import to_db_time, utcnow
from competition_engine.core.database import async_session_maker, engine
from competition_engine.core.exceptions import ConflictError
from competition_engine.models import Competition, CompetitionStatus, Participant
from competition_engine.schemas.competition import CompetitionCreate
from competition_engine.services.competition_service import CompetitionService
from competition_engine.services.scheduler_service import SchedulerService

SEED_DURATION_MINUTES = int(os.getenv("SEED_DURATION_MINUTES", "20"))
SEED_PARTICIPANTS = int(os.getenv("SEED_PARTICIPANTS", "30"))

CATEGORIES = ["MOST_ACTIVE", "BIGGEST_CATCH", "SOCIAL_BUTTERFLY"]


async def seed_scheduled(session) -> None:
    print("Seeding scheduled competitions...")
    result = await SchedulerService(session).auto_create_competitions(utcnow())
    print(f"  Created: {result.created or '-'}")
    print(f"  Skipped: {result.skipped or '-'}")


async def seed_live_competition(session) -> Competition | None:
    """Create a running custom competition with random scores."""
    print("Seeding live competition...")
    now = utcnow()
    data = CompetitionCreate(
        name=f"seed_{now:%Y%m%d_%H%M%S}",
        display_name="Seed Sprint",
        description="Short custom competition for local testing",
        start_date=now - timedelta(minutes=1),
        end_date=now + timedelta(minutes=SEED_DURATION_MINUTES),
        min_participants=1,
        max_participants=max(SEED_PARTICIPANTS, 1),
        included_categories=CATEGORIES,
        rewards={
            "tiers": [
                {"place": 1, "reward": "Sprint Champion", "type": "trophy", "value": 300},
                {"place": 2, "reward": "Sprint Runner-up", "type": "medal", "value": 150},
                {"place": [3, 5], "reward": "Sprint Podium", "type": "badge", "value": 50},
            ],
            "participation": {"reward": "Sprint Finisher", "type": "badge", "value": 10},
        },
    )

    try:
        competition = await CompetitionService(session).create_competition(data)
    except ConflictError:
        print("  Competition already exists, skipping...")
        return None

    competition.status = CompetitionStatus.ACTIVE.value
    for i in range(SEED_PARTICIPANTS):
        scores = {c: round(random.uniform(0, 100), 2) for c in CATEGORIES}
        session.add(
            Participant(
                competition_id=competition.id,
                user_id=uuid.uuid4(),
                total_score=Decimal(str(round(sum(scores.values()), 2))),
                category_scores=scores,
                is_active=random.random() > 0.1,
                enrolled_at=to_db_time(now - timedelta(seconds=SEED_PARTICIPANTS - i)),
            )
        )
    await session.commit()
    print(f"  Created {competition.name} with {SEED_PARTICIPANTS} participants")
    return competition


async def main():
    print("=" * 60)
    print("Seeding competition data...")
    print("=" * 60)

    async with async_session_maker() as session:
        await seed_scheduled(session)
        await seed_live_competition(session)

        result = await session.execute(select(Competition.status, Competition.name))
        print("\nCompetitions:")
        for status, name in result.all():
            print(f"  [{status}] {name}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
