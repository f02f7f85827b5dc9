"""Grouped async key/value cache with per-entry TTL.

CacheService is the seam the gateways cache through; InMemoryCacheService is
the process-local implementation used by CosmosService and the tests.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any, Protocol


class CacheService(Protocol):
    async def get(self, group: str, key: str) -> Any | None: ...

    async def set(
        self, group: str, key: str, value: Any, ttl: timedelta | None = None
    ) -> None: ...

    async def delete(self, group: str, key: str) -> None: ...

    async def get_group_keys(self, group: str) -> list[str]: ...


class InMemoryCacheService:
    """Dictionary-backed cache. Expired entries read as misses and are dropped.

    A ttl of None stores the value until it is deleted explicitly.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._groups: dict[str, dict[str, tuple[Any, float | None]]] = {}
        self._lock = asyncio.Lock()

    async def get(self, group: str, key: str) -> Any | None:
        async with self._lock:
            entries = self._groups.get(group, {})
            entry = entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del entries[key]
                return None
            return value

    async def set(
        self, group: str, key: str, value: Any, ttl: timedelta | None = None
    ) -> None:
        expires_at = None if ttl is None else self._clock() + ttl.total_seconds()
        async with self._lock:
            self._groups.setdefault(group, {})[key] = (value, expires_at)

    async def delete(self, group: str, key: str) -> None:
        async with self._lock:
            self._groups.get(group, {}).pop(key, None)

    async def get_group_keys(self, group: str) -> list[str]:
        async with self._lock:
            return list(self._groups.get(group, {}))
