# appointly/services/reminders.py
"""
Reminder queue kept in Redis.

One sorted set holds every pending reminder: member = appointment id,
score = epoch seconds at which the reminder should go out. A separate sender
process reads the set and delivers; that lives outside this service.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from appointly.core.config import settings
from appointly.core.logging import get_logger

logger = get_logger(__name__)

REMINDER_KEY = "appointly:reminders"

# Redis client singleton
_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Get or create the Redis client; None when REDIS_URL is not configured."""
    global _redis_client
    if _redis_client is None:
        redis_url = settings.REDIS_URL
        if not redis_url:
            return None

        # Upstash requires TLS
        if "upstash.io" in redis_url and redis_url.startswith("redis://"):
            redis_url = redis_url.replace("redis://", "rediss://", 1)

        _redis_client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=2,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        logger.info("redis_client_created", host=redis_url.split("@")[-1])
    return _redis_client


class ReminderQueue:
    def __init__(self, client: Optional[redis.Redis], *, lead_hours: Optional[int] = None):
        self.client = client
        self.lead = timedelta(hours=settings.REMINDER_LEAD_HOURS if lead_hours is None else lead_hours)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def send_at(self, start_time: datetime) -> datetime:
        return start_time - self.lead

    async def schedule(self, appointment_id: int, start_time: datetime, now: datetime) -> Optional[datetime]:
        """
        Queue (or move) the reminder for an appointment. Returns the send time,
        or None when nothing was queued.
        """
        if not self.enabled:
            return None
        when = self.send_at(start_time)
        if when <= now:
            # Too late for a reminder; drop any stale entry from a previous time.
            await self.cancel(appointment_id)
            logger.debug("reminder_skipped", appointment_id=appointment_id, send_at=when.isoformat())
            return None
        try:
            await self.client.zadd(REMINDER_KEY, {str(appointment_id): when.timestamp()})
        except RedisError as e:
            logger.warning("reminder_schedule_failed", appointment_id=appointment_id, error=str(e))
            return None
        logger.info("reminder_scheduled", appointment_id=appointment_id, send_at=when.isoformat())
        return when

    async def cancel(self, appointment_id: int) -> None:
        if not self.enabled:
            return
        try:
            await self.client.zrem(REMINDER_KEY, str(appointment_id))
        except RedisError as e:
            logger.warning("reminder_cancel_failed", appointment_id=appointment_id, error=str(e))
            return
        logger.debug("reminder_cancelled", appointment_id=appointment_id)
