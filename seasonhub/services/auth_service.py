import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.core import constants, security
from seasonhub.core.config import settings
from seasonhub.core.exceptions import InvalidCredentialsError
from seasonhub.core.session import Principal, SessionStore
from seasonhub.models import Season, User
from seasonhub.repository.user import user_repo
from seasonhub.repository.user_season_role import user_season_role_repo
from seasonhub.schemas.token import SeasonLoginResponse, Token
from seasonhub.schemas.user import UserSummary
from seasonhub.services.permission_service import resolve_permissions

logger = logging.getLogger(__name__)

async def _authenticate(db: AsyncSession, email: str, password: str) -> Optional[User]:
    user = await user_repo.get_active_by_email(db, email=email)
    if not user or not security.verify_password(password, user.hashed_password):
        return None
    return user

async def _open_session(
    store: SessionStore,
    user: User,
    context: Dict[str, Any],
    scopes: List[str],
    revoke_previous: bool = False,
) -> str:
    session_id = str(uuid.uuid4())
    ttl = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    await store.create(session_id, user.id, context, ttl)

    previous = await store.swap_user_session(user.id, session_id, ttl)
    if revoke_previous and previous and previous != session_id:
        await store.delete(previous)
        logger.info(f"Revoked previous session of user {user.id}")

    return security.create_access_token(
        subject=user.id,
        session_id=session_id,
        scopes=scopes,
        expires_delta=timedelta(seconds=ttl),
    )

async def authenticate_user(db: AsyncSession, store: SessionStore, form_data: Any) -> Token:
    """
    OAuth2 compatible password login. The new session starts with an empty context.
    """
    user = await _authenticate(db, form_data.username, form_data.password)
    if not user:
        raise InvalidCredentialsError()

    token = await _open_session(store, user, {}, scopes=[])
    return Token(
        access_token=token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )

async def login_with_season_context(
    db: AsyncSession,
    store: SessionStore,
    email: str,
    password: str,
    season_id: int,
) -> SeasonLoginResponse:
    """
    Login scoped to one season.
    Wrong email, wrong password, inactive user and missing season role all
    fail with the same InvalidCredentialsError so the caller cannot tell them apart.
    """
    user = await _authenticate(db, email, password)
    assignment = None
    if user:
        assignment = await user_season_role_repo.get_live(db, user_id=user.id, season_id=season_id)
    season = await db.get(Season, season_id) if assignment else None
    if not user or not assignment or season is None or season.deleted_at is not None:
        logger.info(f"Season login refused (season {season_id})")
        raise InvalidCredentialsError()

    context = {
        constants.CONTEXT_SCHOOL_KEY: season.school_id,
        constants.CONTEXT_SEASON_KEY: season_id,
    }
    token = await _open_session(
        store,
        user,
        context,
        scopes=[f"{constants.SEASON_SCOPE_PREFIX}{assignment.role}"],
        revoke_previous=True,
    )
    logger.info(f"User {user.id} logged in to season {season_id} as '{assignment.role}'")

    return SeasonLoginResponse(
        token=token,
        user=UserSummary(id=user.id, name=user.full_name, email=user.email, avatar_url=user.avatar_url),
        role=assignment.role,
        season_id=season_id,
        permissions=await resolve_permissions(db, user.id, season_id),
    )

async def logout_user(store: SessionStore, principal: Principal) -> Dict[str, str]:
    if principal.session_id:
        await store.delete(principal.session_id)
    return {"message": "Successfully logged out"}
