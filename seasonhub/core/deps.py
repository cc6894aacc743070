import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, ExpiredSignatureError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as async_redis

from seasonhub.core import constants, security
from seasonhub.core.cache import SeasonCache, get_redis
from seasonhub.core.database import get_db
from seasonhub.core.exceptions import PermissionDeniedError, SeasonHubError
from seasonhub.core.session import Principal, RedisSessionStore, SessionStore
from seasonhub.models import User
from seasonhub.repository.role import KnownRole
from seasonhub.repository.season import SeasonRepository
from seasonhub.repository.user import user_repo
from seasonhub.services.context_service import ContextService
from seasonhub.services.permission_service import resolve_role
from seasonhub.services.season_service import SeasonService

logger = logging.getLogger(__name__)

# Must match the password login route of the auth router
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login/access-token")

SEASON_HEADER = "X-Season-ID"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

# -------------------------------
# Stores / repositories
# -------------------------------
async def get_session_store(redis_client: async_redis.Redis = Depends(get_redis)) -> SessionStore:
    return RedisSessionStore(redis_client)

async def get_season_cache(redis_client: async_redis.Redis = Depends(get_redis)) -> SeasonCache:
    return SeasonCache(redis_client)

async def get_season_repository(cache: SeasonCache = Depends(get_season_cache)) -> SeasonRepository:
    return SeasonRepository(cache)

async def get_season_service(repo: SeasonRepository = Depends(get_season_repository)) -> SeasonService:
    return SeasonService(repo)

async def get_context_service(store: SessionStore = Depends(get_session_store)) -> ContextService:
    return ContextService(store)

# -------------------------------
# Authentication
# -------------------------------
async def get_current_principal(
    db: AsyncSession = Depends(get_db),
    token: str = Depends(oauth2_scheme),
    store: SessionStore = Depends(get_session_store),
) -> Principal:
    """
    Validate the JWT and the session it points at.
    A token whose session was deleted (logout, newer season login) is revoked.
    """
    try:
        payload = security.decode_token(token)
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except (JWTError, ValidationError):
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("sub")
    session_id = payload.get("jti")
    if user_id is None or session_id is None or payload.get("type") != "access":
        raise _unauthorized("Could not validate credentials")

    if not await store.exists(session_id):
        raise _unauthorized("Token has been revoked")

    try:
        user = await user_repo.get(db, id=int(user_id))
    except ValueError:
        raise _unauthorized("Could not validate credentials")

    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")

    return Principal(user=user, session_id=session_id, scopes=list(payload.get("scopes") or []))

async def get_current_user(principal: Principal = Depends(get_current_principal)) -> User:
    return principal.user

async def get_current_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """
    Platform administrators only (not tied to any season).
    """
    if not current_user.is_superadmin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The user doesn't have enough privileges"
        )
    return current_user

# -------------------------------
# Season permission guard
# -------------------------------
@dataclass
class SeasonScope:
    user: User
    season_id: int
    role: str
    permissions: List[str] = field(default_factory=list)

    @property
    def user_id(self) -> int:
        return self.user.id


def _parse_season_id(raw) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise PermissionDeniedError("Invalid season identifier")


class RequireSeasonPermission:
    """
    Route dependency allowing the request only when the caller's role in the
    target season grants every required permission.

    The season comes from the path parameter ``season_id``, then the
    ``X-Season-ID`` header, then the ``season_id`` query parameter, then the
    session context. Any failure while resolving denies.
    """

    def __init__(self, *required: str):
        self.required = required

    async def __call__(
        self,
        request: Request,
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db),
        store: SessionStore = Depends(get_session_store),
        repo: SeasonRepository = Depends(get_season_repository),
    ) -> SeasonScope:
        try:
            return await self._resolve(request, principal, db, store, repo)
        except SeasonHubError:
            raise
        except Exception as e:
            logger.error(f"Season permission check failed for user {principal.user_id}: {e}", exc_info=True)
            raise PermissionDeniedError()

    async def _resolve(
        self,
        request: Request,
        principal: Principal,
        db: AsyncSession,
        store: SessionStore,
        repo: SeasonRepository,
    ) -> SeasonScope:
        context = {}
        if principal.session_id:
            context = await store.read_context(principal.session_id) or {}

        season_id = None
        for source in (
            request.path_params.get("season_id"),
            request.headers.get(SEASON_HEADER),
            request.query_params.get("season_id"),
            context.get(constants.CONTEXT_SEASON_KEY),
        ):
            season_id = _parse_season_id(source)
            if season_id is not None:
                break
        if season_id is None:
            raise PermissionDeniedError("No season selected")

        season = await repo.find(db, season_id)
        if season is None:
            raise PermissionDeniedError("Season not accessible")

        context_school = context.get(constants.CONTEXT_SCHOOL_KEY)
        if context_school is not None and season.school_id != context_school:
            logger.warning(
                f"User {principal.user_id} targeted season {season_id} of school {season.school_id} "
                f"while school {context_school} is selected"
            )
            raise PermissionDeniedError("Season does not belong to the selected school")

        resolution = await resolve_role(db, principal.user_id, season_id)
        if not isinstance(resolution, KnownRole) or not resolution.permissions:
            raise PermissionDeniedError("No permissions in this season")

        missing = [p for p in self.required if p not in resolution.permissions]
        if missing:
            logger.info(f"User {principal.user_id} denied in season {season_id}: missing {missing}")
            raise PermissionDeniedError(f"Missing permission: {', '.join(missing)}")

        return SeasonScope(
            user=principal.user,
            season_id=season_id,
            role=resolution.name,
            permissions=list(resolution.permissions),
        )

# -------------------------------
# Context rate limit
# -------------------------------
def _rate_limit_identity(request: Request) -> str:
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        try:
            sub = security.decode_token(auth[7:]).get("sub")
            if sub:
                return f"user:{sub}"
        except JWTError:
            pass
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"

async def context_rate_limit(
    request: Request,
    redis_client: async_redis.Redis = Depends(get_redis),
) -> None:
    """Fixed one-minute window, always on, independent of RATE_LIMIT_ENABLED."""
    window = datetime.now(timezone.utc).strftime("%Y%m%d%H%M")
    rl_key = f"{constants.REDIS_PREFIX_CONTEXT_RATE_LIMIT}{_rate_limit_identity(request)}:{window}"
    try:
        current = await redis_client.incr(rl_key)
        if current == 1:
            await redis_client.expire(rl_key, constants.CONTEXT_RATE_LIMIT_SECONDS + 1)
    except Exception as e:
        logger.warning(f"Context rate limit unavailable: {e}")
        return

    if current > constants.CONTEXT_RATE_LIMIT_TIMES:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many context changes, try again later",
        )
