"""
Webhook idempotency store

Records processed Stripe event ids so a redelivered checkout.session.completed
never buys a second label. Redis SET NX gives cross-instance coordination;
without REDIS_URL (or when Redis is unreachable) an in-process set is used.
"""
import logging
from collections import OrderedDict
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)

WEBHOOK_KEY_PREFIX = "webhook:event:"
WEBHOOK_TTL_HOURS = 24
FALLBACK_MAX_EVENTS = 10000


class WebhookEventStore:
    """Claim-once registry of webhook event ids."""

    def __init__(
        self,
        redis_url: str = "",
        ttl_hours: int = WEBHOOK_TTL_HOURS,
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.ttl_hours = ttl_hours
        self._client = client
        self._connect_attempted = client is not None
        self._fallback: "OrderedDict[str, None]" = OrderedDict()

    async def _get_redis(self) -> Optional[redis.Redis]:
        """Get Redis client, connecting lazily. None means in-memory mode."""
        if self._client is not None:
            return self._client
        if not self.redis_url or self._connect_attempted:
            return None

        self._connect_attempted = True
        try:
            client = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
            await client.ping()
            self._client = client
            logger.info("Redis connection established for webhook idempotency")
        except Exception as e:
            logger.warning(f"Redis connection failed: {e}. Falling back to in-memory.")
            self._client = None

        return self._client

    def _remember(self, event_id: str) -> None:
        self._fallback[event_id] = None
        if len(self._fallback) > FALLBACK_MAX_EVENTS:
            while len(self._fallback) > FALLBACK_MAX_EVENTS // 2:
                self._fallback.popitem(last=False)

    async def claim(self, event_id: str) -> bool:
        """
        Atomically claim an event id.

        Returns True if this caller owns the event and should run its side
        effect, False if it was claimed before.
        """
        if event_id in self._fallback:
            return False

        client = await self._get_redis()
        if client:
            try:
                won = await client.set(
                    f"{WEBHOOK_KEY_PREFIX}{event_id}",
                    "1",
                    nx=True,
                    ex=self.ttl_hours * 3600,
                )
                self._remember(event_id)
                return bool(won)
            except Exception as e:
                logger.warning(f"Redis claim failed for webhook {event_id}: {e}; using in-memory claim")

        self._remember(event_id)
        return True

    async def close(self) -> None:
        """Close Redis connection on shutdown."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
