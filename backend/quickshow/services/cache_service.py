"""
Redis cache for the occupied-seats query.

CACHING STRATEGY
================

What we cache:
  - The occupied seat list per show (JSON list)
  - Cache key pattern: "shows:{show_id}:occupied"

Why:
  - Seat-map polling from the seat picker is the hottest read path
  - A short TTL (seconds) keeps the picker close to real time

Invalidation strategy:
  - Every claim and every release deletes the show's key
  - TTL-based expiry as safety net

The claim path never reads this cache. Availability is always decided
against the database row and its version, so a stale cache entry can only
make the picker show a seat as free that the claim will then reject.
"""

import json
from typing import Optional

import redis.asyncio as redis

from quickshow.core.config import Settings
from quickshow.core.logging import get_logger
from quickshow.core.metrics import record_cache_operation

logger = get_logger(__name__)


def _make_occupied_key(show_id: int) -> str:
    return f"shows:{show_id}:occupied"


class CacheService:
    """Owns the Redis connection. A service without a client behaves as a permanent miss."""

    def __init__(self, client: Optional[redis.Redis], ttl: int):
        self.client = client
        self.ttl = ttl

    @classmethod
    async def connect(cls, settings: Settings) -> "CacheService":
        if not settings.REDIS_ENABLED:
            return cls(None, settings.REDIS_CACHE_TTL)

        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except redis.RedisError as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            client = None
        return cls(client, settings.REDIS_CACHE_TTL)

    async def close(self) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None

    async def get_occupied_seats(self, show_id: int) -> Optional[list[str]]:
        if not self.client:
            return None

        key = _make_occupied_key(show_id)
        try:
            data = await self.client.get(key)
        except redis.RedisError as e:
            logger.error("cache_get_error", key=key, error=str(e))
            return None

        record_cache_operation("get", hit=data is not None)
        return json.loads(data) if data else None

    async def set_occupied_seats(self, show_id: int, seats: list[str]) -> None:
        if not self.client:
            return

        key = _make_occupied_key(show_id)
        try:
            await self.client.setex(key, self.ttl, json.dumps(seats))
            logger.debug("cache_set", key=key, ttl=self.ttl)
        except redis.RedisError as e:
            logger.error("cache_set_error", key=key, error=str(e))

    async def invalidate_show(self, show_id: int) -> None:
        if not self.client:
            return

        key = _make_occupied_key(show_id)
        try:
            await self.client.delete(key)
        except redis.RedisError as e:
            logger.error("cache_invalidation_error", key=key, error=str(e))

    async def stats(self) -> dict:
        """Redis cache statistics for the health endpoint."""
        if not self.client:
            return {"status": "disabled"}

        try:
            info = await self.client.info("stats")
            hits = info.get("keyspace_hits", 0)
            misses = info.get("keyspace_misses", 0)
            return {
                "status": "connected",
                "hits": hits,
                "misses": misses,
                "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
            }
        except redis.RedisError as e:
            return {"status": "error", "error": str(e)}
