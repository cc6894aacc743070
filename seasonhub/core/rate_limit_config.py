# Per-endpoint rate limits, kept in one place.
# Context mutations are not listed here: they use the always-on limiter in deps.context_rate_limit.
from fastapi_limiter.depends import RateLimiter
from seasonhub.core.config import settings

# path: limit
API_RATE_LIMITS = {
    # auth
    "/auth/login": {"times": 20, "seconds": 60},
    "/auth/login/access-token": {"times": 50, "seconds": 10},
    "/auth/login/me": {"times": 100, "seconds": 10},
    "/auth/logout": {"times": 50, "seconds": 10},

    # seasons
    "/seasons": {"times": 100, "seconds": 10},
    "/seasons/write": {"times": 25, "seconds": 10},
    "/seasons/stats": {"times": 50, "seconds": 10},

    # roles / snapshots
    "/seasons/{season_id}/roles": {"times": 50, "seconds": 10},
    "/seasons/{season_id}/snapshots": {"times": 50, "seconds": 10},

    # me
    "/me/seasons": {"times": 100, "seconds": 10},
}

async def _noop_dep():
    return None

def get_rate_limiter(path: str):
    if not settings.RATE_LIMIT_ENABLED:
        # FastAPI still needs a dependency callable when limiting is disabled
        return _noop_dep
    conf = API_RATE_LIMITS.get(path)
    if conf:
        return RateLimiter(times=conf["times"], seconds=conf["seconds"])
    return _noop_dep
