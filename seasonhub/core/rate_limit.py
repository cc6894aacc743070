# fastapi-limiter setup backed by Redis
from fastapi_limiter import FastAPILimiter
import redis.asyncio as redis
from seasonhub.core.config import settings

async def init_rate_limiter():
    redis_client = redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        decode_responses=True
    )
    await FastAPILimiter.init(redis_client)
