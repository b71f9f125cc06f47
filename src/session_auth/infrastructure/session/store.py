"""Session Store Backends

Key/value storage with expiry for session records and pending OAuth
state values. The session manager treats each call as one atomic
operation; backends must be safe for concurrent use.

Storage Schema:
- session:{session_id} -> {session_json}   (TTL = session lifetime)
- oauth_state:{state} -> {provider}         (TTL = state lifetime)
"""

import asyncio
import heapq
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from session_auth.core.exceptions import SessionError

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Session storage contract

    All methods raise SessionError when the backend fails.
    """

    @abstractmethod
    async def put(self, key: str, value: dict, ttl_seconds: int) -> None:
        """Store a value with an expiry"""

    @abstractmethod
    async def get(self, key: str) -> Optional[dict]:
        """Read a value; None when missing or expired"""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value; True if it existed"""

    @abstractmethod
    async def pop(self, key: str) -> Optional[dict]:
        """Read and delete a value in one step (single-use entries)"""

    async def health_check(self) -> bool:
        return True


class RedisSessionStore(SessionStore):
    """Redis-backed session store (required for multi-instance deployments)"""

    def __init__(self, redis_client: Redis):
        """Initialize session store

        Args:
            redis_client: Redis connection for session storage
        """
        self.redis = redis_client

    async def put(self, key: str, value: dict, ttl_seconds: int) -> None:
        try:
            await self.redis.setex(key, ttl_seconds, json.dumps(value))
        except RedisError as e:
            logger.error(f"Redis SETEX failed for key {self._mask(key)}: {e}")
            raise SessionError(f"Session write failed: {e}") from e

    async def get(self, key: str) -> Optional[dict]:
        try:
            raw = await self.redis.get(key)
        except RedisError as e:
            logger.error(f"Redis GET failed for key {self._mask(key)}: {e}")
            raise SessionError(f"Session read failed: {e}") from e
        return self._decode(key, raw)

    async def delete(self, key: str) -> bool:
        try:
            return await self.redis.delete(key) > 0
        except RedisError as e:
            logger.error(f"Redis DELETE failed for key {self._mask(key)}: {e}")
            raise SessionError(f"Session delete failed: {e}") from e

    async def pop(self, key: str) -> Optional[dict]:
        try:
            raw = await self.redis.getdel(key)
        except RedisError as e:
            logger.error(f"Redis GETDEL failed for key {self._mask(key)}: {e}")
            raise SessionError(f"Session read failed: {e}") from e
        return self._decode(key, raw)

    async def health_check(self) -> bool:
        try:
            return await self.redis.ping()
        except RedisError as e:
            logger.error(f"Session store health check failed: {e}")
            return False

    def _decode(self, key: str, raw: Optional[str]) -> Optional[dict]:
        if not raw:
            return None
        try:
            value = json.loads(raw)
        except ValueError as e:
            logger.error(f"Corrupt entry for key {self._mask(key)}: {e}")
            raise SessionError(f"Session record is corrupt: {e}") from e
        if not isinstance(value, dict):
            logger.error(f"Corrupt entry for key {self._mask(key)}: not an object")
            raise SessionError("Session record is corrupt")
        return value

    @staticmethod
    def _mask(key: str) -> str:
        """Keep session identifiers out of logs"""
        prefix, _, ident = key.partition(":")
        return f"{prefix}:{ident[:8]}..."


class InMemorySessionStore(SessionStore):
    """In-process session store

    WARNING: This only works for single-instance deployments!

    Expired entries are purged on every write, so keys that are never read
    again (abandoned OAuth states, idle sessions) do not accumulate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Initialize session store

        Args:
            clock: Monotonic time source in seconds
        """
        self._entries: Dict[str, tuple[float, dict]] = {}
        self._deadlines: list[tuple[float, str]] = []
        self._clock = clock
        self._lock = asyncio.Lock()

    async def put(self, key: str, value: dict, ttl_seconds: int) -> None:
        async with self._lock:
            now = self._clock()
            self._purge_expired(now)
            expires_at = now + ttl_seconds
            self._entries[key] = (expires_at, dict(value))
            heapq.heappush(self._deadlines, (expires_at, key))

    async def get(self, key: str) -> Optional[dict]:
        async with self._lock:
            return self._live(key)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def pop(self, key: str) -> Optional[dict]:
        async with self._lock:
            value = self._live(key)
            self._entries.pop(key, None)
            return value

    def _live(self, key: str) -> Optional[dict]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return dict(value)

    def _purge_expired(self, now: float) -> None:
        while self._deadlines and self._deadlines[0][0] <= now:
            expires_at, key = heapq.heappop(self._deadlines)
            entry = self._entries.get(key)
            # Skip deadlines superseded by a later write to the same key
            if entry is not None and entry[0] == expires_at:
                del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
