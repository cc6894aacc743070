from typing import Any
from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.core.rate_limit_config import get_rate_limiter
from seasonhub.core.database import get_db
from seasonhub.core.deps import get_current_principal, get_current_user, get_session_store
from seasonhub.core.session import Principal, SessionStore
from seasonhub.models import User
from seasonhub.schemas.token import SeasonLoginRequest, SeasonLoginResponse, Token
from seasonhub.schemas.user import UserResponse
from seasonhub.services.auth_service import authenticate_user, login_with_season_context, logout_user

router = APIRouter(tags=["auth"])

@router.post("/login", response_model=SeasonLoginResponse, dependencies=[Depends(get_rate_limiter("/auth/login"))])
async def login_season(
    request: SeasonLoginRequest,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
) -> Any:
    """
    Log in directly into a season. The session context is set to the season and its school.
    """
    return await login_with_season_context(db, store, request.email, request.password, request.season_id)

@router.post("/login/access-token", response_model=Token, dependencies=[Depends(get_rate_limiter("/auth/login/access-token"))])
async def login_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
) -> Any:
    """
    OAuth2 compatible token login, get an access token for future requests
    """
    return await authenticate_user(db, store, form_data)

@router.get("/login/me", response_model=UserResponse, dependencies=[Depends(get_rate_limiter("/auth/login/me"))])
async def read_current_user_me(
    current_user: User = Depends(get_current_user)
):
    return current_user

@router.post("/logout", dependencies=[Depends(get_rate_limiter("/auth/logout"))])
async def logout(
    principal: Principal = Depends(get_current_principal),
    store: SessionStore = Depends(get_session_store),
):
    """
    Logout: the session is deleted, which revokes the token.
    """
    return await logout_user(store, principal)
