from __future__ import annotations

from asyncio import Lock
import time
from typing import Any

from .config import VETO_SESSION_TTL_SECONDS


class TTLCache:
    """In-process store whose entries expire after ``ttl_seconds``.

    Contents are lost on restart; nothing here is shared between workers.
    """

    def __init__(self, ttl_seconds: float = 300.0) -> None:
        self._ttl = ttl_seconds
        self._lock = Lock()
        self._store: dict[Any, tuple[Any, float]] = {}

    def _live(self, key: Any, now: float) -> Any | None:
        entry = self._store.get(key)
        if not entry:
            return None
        value, expires_at = entry
        if expires_at <= now:
            self._store.pop(key, None)
            return None
        return value

    async def get(self, key: Any) -> Any | None:
        async with self._lock:
            return self._live(key, time.monotonic())

    async def set(self, key: Any, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        expires_at = time.monotonic() + max(ttl, 0.0)
        async with self._lock:
            if ttl <= 0:
                self._store.pop(key, None)
            else:
                self._store[key] = (value, expires_at)

    async def pop(self, key: Any) -> Any | None:
        async with self._lock:
            value = self._live(key, time.monotonic())
            self._store.pop(key, None)
            return value

    async def invalidate(self, key: Any) -> None:
        async with self._lock:
            self._store.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()


# Map veto sessions keyed by match id.
veto_sessions = TTLCache(ttl_seconds=VETO_SESSION_TTL_SECONDS)
