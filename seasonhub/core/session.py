import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import redis.asyncio as async_redis

from seasonhub.core import constants

logger = logging.getLogger(__name__)


@dataclass
class Principal:
    """Authenticated caller: the user plus the session its token points at."""
    user: Any
    session_id: Optional[str] = None
    scopes: List[str] = field(default_factory=list)

    @property
    def user_id(self) -> int:
        return self.user.id


class SessionStore(ABC):
    """Owner of per-session blobs. Callers only see the context mapping."""

    @abstractmethod
    async def create(self, session_id: str, user_id: int, context: Dict[str, Any], ttl: int) -> None:
        ...

    @abstractmethod
    async def exists(self, session_id: str) -> bool:
        ...

    @abstractmethod
    async def read_context(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored context, or None when the session does not exist."""

    @abstractmethod
    async def write_context(self, session_id: str, context: Dict[str, Any]) -> bool:
        """Replace the context in place. Returns False when the session does not exist."""

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        ...

    @abstractmethod
    async def swap_user_session(self, user_id: int, session_id: str, ttl: int) -> Optional[str]:
        """Record ``session_id`` as the user's current session, returning the previous one."""


class RedisSessionStore(SessionStore):
    def __init__(self, redis_client: async_redis.Redis):
        self.redis = redis_client

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{constants.REDIS_PREFIX_SESSION}{session_id}"

    async def _load(self, session_id: str) -> Optional[Dict[str, Any]]:
        raw = await self.redis.get(self._key(session_id))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            blob = json.loads(raw)
        except (TypeError, ValueError):
            logger.error(f"Corrupted session blob for {session_id}")
            return None
        return blob if isinstance(blob, dict) else None

    async def create(self, session_id: str, user_id: int, context: Dict[str, Any], ttl: int) -> None:
        blob = {"user_id": user_id, "context": dict(context)}
        await self.redis.setex(self._key(session_id), ttl, json.dumps(blob))

    async def exists(self, session_id: str) -> bool:
        return bool(await self.redis.exists(self._key(session_id)))

    async def read_context(self, session_id: str) -> Optional[Dict[str, Any]]:
        blob = await self._load(session_id)
        if blob is None:
            return None
        context = blob.get("context")
        return dict(context) if isinstance(context, dict) else {}

    async def write_context(self, session_id: str, context: Dict[str, Any]) -> bool:
        blob = await self._load(session_id)
        if blob is None:
            return False
        blob["context"] = dict(context)
        # keepttl: the session still expires together with its token
        await self.redis.set(self._key(session_id), json.dumps(blob), keepttl=True)
        return True

    async def delete(self, session_id: str) -> None:
        await self.redis.delete(self._key(session_id))

    async def swap_user_session(self, user_id: int, session_id: str, ttl: int) -> Optional[str]:
        key = f"{constants.REDIS_PREFIX_USER_SESSION}{user_id}"
        previous = await self.redis.get(key)
        await self.redis.setex(key, ttl, session_id)
        if isinstance(previous, bytes):
            previous = previous.decode()
        return previous
