import logging
from typing import Any, Dict, Optional

from seasonhub.core.constants import CONTEXT_SCHOOL_KEY, CONTEXT_SEASON_KEY
from seasonhub.core.exceptions import NoActiveSessionError
from seasonhub.core.session import Principal, SessionStore

logger = logging.getLogger(__name__)


class ContextService:
    """(school, season) selection kept in the principal's session blob.

    Lifecycle: Unset -> SchoolSelected -> SchoolAndSeasonSelected. Changing
    the school keeps the selected season; the permission guard rejects a
    season that does not belong to the selected school.
    """

    def __init__(self, store: SessionStore):
        self.store = store

    async def get(self, principal: Principal) -> Dict[str, Optional[int]]:
        context: Dict[str, Any] = {}
        if principal.session_id:
            context = await self.store.read_context(principal.session_id) or {}
        return {
            CONTEXT_SCHOOL_KEY: context.get(CONTEXT_SCHOOL_KEY),
            CONTEXT_SEASON_KEY: context.get(CONTEXT_SEASON_KEY),
        }

    async def set_school(self, principal: Principal, school_id: int) -> Dict[str, Optional[int]]:
        context = await self._read_or_fail(principal)
        context[CONTEXT_SCHOOL_KEY] = school_id
        context.setdefault(CONTEXT_SEASON_KEY, None)
        await self._write_or_fail(principal, context)
        logger.info(f"User {principal.user_id} selected school {school_id} (season kept: {context[CONTEXT_SEASON_KEY]})")
        return {CONTEXT_SCHOOL_KEY: school_id, CONTEXT_SEASON_KEY: context[CONTEXT_SEASON_KEY]}

    async def set_season(self, principal: Principal, season_id: int, school_id: int) -> Dict[str, Optional[int]]:
        context = await self._read_or_fail(principal)
        context[CONTEXT_SCHOOL_KEY] = school_id
        context[CONTEXT_SEASON_KEY] = season_id
        await self._write_or_fail(principal, context)
        logger.info(f"User {principal.user_id} selected season {season_id} of school {school_id}")
        return {CONTEXT_SCHOOL_KEY: school_id, CONTEXT_SEASON_KEY: season_id}

    async def _read_or_fail(self, principal: Principal) -> Dict[str, Any]:
        if not principal.session_id:
            raise NoActiveSessionError()
        context = await self.store.read_context(principal.session_id)
        if context is None:
            raise NoActiveSessionError()
        return context

    async def _write_or_fail(self, principal: Principal, context: Dict[str, Any]) -> None:
        if not await self.store.write_context(principal.session_id, context):
            raise NoActiveSessionError()
