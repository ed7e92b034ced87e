"""Notification dispatch: hands "competition completed" events to Redis.

Delivery itself (push, email) belongs to the consumer of the queue. Every
send is independent; a failed push is logged and counted, never raised.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

from competition_engine.core.clock import ensure_utc
from competition_engine.core.config import settings
from competition_engine.middleware.metrics import record_notifications
from competition_engine.models.competition import Competition
from competition_engine.services.ranking_service import FinalRankings, RankedParticipant
from competition_engine.services.redis_service import RedisService
from competition_engine.services.reward_service import RewardSummary

logger = logging.getLogger(__name__)

COMPETITION_COMPLETED = "competition_completed"


def build_completion_payload(
    competition: Competition,
    participant: RankedParticipant,
    total_participants: int,
    summary: RewardSummary,
    now: datetime,
) -> dict[str, Any]:
    """Per-participant event body: final placement plus rewards granted."""
    return {
        "type": COMPETITION_COMPLETED,
        "user_id": str(participant.user_id),
        "competition_id": str(competition.id),
        "competition_name": competition.name,
        "display_name": competition.display_name,
        "final_rank": participant.final_rank,
        "final_score": participant.final_score,
        "total_participants": total_participants,
        "rewards": [
            {
                "reward_name": r.grant.reward_name,
                "reward_type": r.grant.reward_type.value,
                "reward_value": r.grant.reward_value,
                "reason": r.grant.reason,
            }
            for r in summary.granted_to(participant.user_id)
        ],
        "completed_at": ensure_utc(now).isoformat(),
    }


class NotificationDispatcher:
    """Fans out completion notifications with bounded concurrency."""

    def __init__(
        self,
        redis_service: RedisService,
        queue_key: str | None = None,
        concurrency: int | None = None,
    ):
        self.redis_service = redis_service
        self.queue_key = queue_key or settings.NOTIFICATION_QUEUE_KEY
        self.concurrency = concurrency or settings.NOTIFICATION_CONCURRENCY

    async def notify_competition_completed(
        self,
        competition: Competition,
        rankings: FinalRankings,
        summary: RewardSummary,
        now: datetime,
    ) -> tuple[int, int]:
        """Queue one notification per ranked participant.

        Returns:
            Tuple of (sent, failed)
        """
        payloads = [
            build_completion_payload(
                competition, participant, rankings.total_participants, summary, now
            )
            for participant in rankings.participants
        ]
        if not payloads:
            return 0, 0

        semaphore = asyncio.Semaphore(self.concurrency)

        async def send(payload: dict[str, Any]) -> bool:
            async with semaphore:
                try:
                    await self.redis_service.push_notification(self.queue_key, payload)
                    return True
                except Exception as e:
                    logger.warning(
                        f"Failed to queue completion notification for user "
                        f"{payload['user_id']} (competition {payload['competition_id']}): {e}"
                    )
                    return False

        results = await asyncio.gather(*(send(p) for p in payloads))
        sent = sum(1 for ok in results if ok)
        failed = len(results) - sent
        record_notifications(sent, failed)

        logger.info(
            f"Queued {sent} completion notifications for competition {competition.id}"
            + (f", {failed} failed" if failed else "")
        )
        return sent, failed
