import json
import logging
from typing import Any, AsyncGenerator, Iterable, List, Optional

import redis.asyncio as async_redis

from seasonhub.core import constants
from seasonhub.core.config import settings
from seasonhub.core.exceptions import CacheFlushRefusedError

logger = logging.getLogger(__name__)


async def get_redis() -> AsyncGenerator[async_redis.Redis, None]:
    client = async_redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        decode_responses=True
    )
    try:
        yield client
    finally:
        await client.aclose()


class SeasonCacheKeys:
    """Every key the season repository may write, grouped by invalidation family."""

    ALL = constants.REDIS_KEY_SEASONS_ALL

    @staticmethod
    def season(season_id: int) -> str:
        return f"{constants.REDIS_PREFIX_SEASON}{season_id}"

    @staticmethod
    def current(school_id: int) -> str:
        return f"{constants.REDIS_PREFIX_SCHOOL_SEASONS}{school_id}:current"

    @staticmethod
    def active(school_id: int) -> str:
        return f"{constants.REDIS_PREFIX_SCHOOL_SEASONS}{school_id}:active"

    @staticmethod
    def school_list(school_id: int) -> str:
        return f"{constants.REDIS_PREFIX_SCHOOL_SEASONS}{school_id}:list"

    @classmethod
    def school_family(cls, school_id: int) -> List[str]:
        return [cls.current(school_id), cls.active(school_id), cls.school_list(school_id)]

    @classmethod
    def for_create(cls, school_id: int) -> List[str]:
        return [cls.ALL, *cls.school_family(school_id)]

    @classmethod
    def for_mutation(cls, season_id: int, school_ids: Iterable[int]) -> List[str]:
        keys = [cls.season(season_id), cls.ALL]
        for school_id in dict.fromkeys(school_ids):
            if school_id is not None:
                keys.extend(cls.school_family(school_id))
        return keys


class SeasonCache:
    """JSON key/value cache with TTL on top of Redis.

    Reads degrade to a miss when Redis fails; writes done on behalf of a
    mutation (``delete``) propagate errors so a stale entry is never reported
    as invalidated.
    """

    def __init__(self, redis_client: async_redis.Redis, ttl: Optional[int] = None):
        self.redis = redis_client
        self.ttl = ttl if ttl is not None else settings.SEASON_CACHE_TTL_SECONDS

    async def get_json(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(key)
        except Exception as e:
            logger.warning(f"Season cache read failed for {key}: {e}")
            return None
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding undecodable season cache entry {key}")
            return None

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            await self.redis.setex(key, ttl or self.ttl, json.dumps(value, default=str))
        except Exception as e:
            # Populating is best effort; the store stays the source of truth
            logger.warning(f"Season cache write failed for {key}: {e}")

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        await self.redis.delete(*keys)

    async def flush_namespace(self) -> int:
        """Drop every season key. Not for production use."""
        if settings.ENVIRONMENT == "production":
            raise CacheFlushRefusedError()
        keys = [key async for key in self.redis.scan_iter(match=constants.REDIS_SEASON_NAMESPACE)]
        if keys:
            await self.redis.delete(*keys)
        logger.warning(f"Season cache namespace flushed ({len(keys)} keys)")
        return len(keys)
