"""Account-scoped cache of live data-plane clients.

ClientCache is the only owner of CosmosClient handles: it creates them via
AuthNegotiator, disposes them when they expire, and disposes all of them at
shutdown. The cache key is the account name alone; the auth mode and
subscription of later callers do not affect a cached entry.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta

from azure.cosmos.aio import CosmosClient

from cosmos_gateway.db.auth import AuthNegotiator
from cosmos_gateway.db.cache import CacheService
from cosmos_gateway.errors import require
from cosmos_gateway.models.results import AuthMode, RetryPolicyOptions

logger = logging.getLogger(__name__)

CACHE_GROUP = "cosmos"
CLIENT_KEY_PREFIX = "clients_"
DEFAULT_TTL = timedelta(minutes=15)


@dataclass(frozen=True)
class ClientCacheEntry:
    """A cached client and the monotonic time it was created at."""

    account_name: str
    client: CosmosClient
    created_at: float
    ttl: timedelta

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl.total_seconds()


class ClientCache:
    """Concurrency-safe map from account name to a live CosmosClient.

    Concurrent misses for the same account are serialized on a per-account
    lock, so only one negotiation runs and only one handle is stored. A lock
    lives only while some caller holds or awaits it.

    Usage:
        clients = ClientCache(negotiator, InMemoryCacheService())
        client = await clients.get_or_create("myaccount", subscription_id)
        # ... use client ...
        await clients.close()
    """

    def __init__(
        self,
        negotiator: AuthNegotiator,
        cache: CacheService,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._negotiator = negotiator
        self._cache = cache
        self._ttl = ttl
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._closed = False

    @staticmethod
    def cache_key(account_name: str) -> str:
        return CLIENT_KEY_PREFIX + account_name

    async def get_or_create(
        self,
        account_name: str,
        subscription: str,
        mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> CosmosClient:
        """Return the cached client for an account, negotiating one on a miss."""
        require(account_name=account_name, subscription=subscription)
        key = self.cache_key(account_name)

        entry = await self._cache.get(CACHE_GROUP, key)
        if entry is not None and not entry.is_expired(self._clock()):
            logger.debug("Client cache hit: %s", key)
            return entry.client

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                # Another caller may have refreshed the entry while we waited.
                client = await self._lookup(key)
                if client is not None:
                    return client

                client = await self._negotiator.create_client(
                    account_name, subscription, mode, tenant, retry_policy
                )
                entry = ClientCacheEntry(
                    account_name=account_name,
                    client=client,
                    created_at=self._clock(),
                    ttl=self._ttl,
                )
                await self._cache.set(CACHE_GROUP, key, entry)
                self._closed = False
                logger.info("Cached Cosmos client for account %s", account_name)
                return client
        finally:
            self._release_lock(key)

    def _release_lock(self, key: str) -> None:
        """Forget the per-account lock once no caller holds or awaits it."""
        users = self._lock_users.pop(key) - 1
        if users:
            self._lock_users[key] = users
        else:
            self._locks.pop(key, None)

    async def _lookup(self, key: str) -> CosmosClient | None:
        """Return a live cached client, disposing the entry if it has expired."""
        entry: ClientCacheEntry | None = await self._cache.get(CACHE_GROUP, key)
        if entry is None:
            logger.debug("Client cache miss: %s", key)
            return None
        if entry.is_expired(self._clock()):
            await self._cache.delete(CACHE_GROUP, key)
            logger.info("Client for account %s expired, disposing", entry.account_name)
            await self._dispose(entry)
            return None
        logger.debug("Client cache hit: %s", key)
        return entry.client

    async def _dispose(self, entry: ClientCacheEntry) -> None:
        try:
            await entry.client.close()
        except Exception:
            logger.warning(
                "Failed to close Cosmos client for account %s (already disposed?)",
                entry.account_name,
                exc_info=True,
            )

    async def close(self) -> None:
        """Dispose every cached client. A second call is a no-op."""
        if self._closed:
            return
        self._closed = True

        keys = await self._cache.get_group_keys(CACHE_GROUP)
        for key in keys:
            if not key.startswith(CLIENT_KEY_PREFIX):
                continue
            entry: ClientCacheEntry | None = await self._cache.get(CACHE_GROUP, key)
            await self._cache.delete(CACHE_GROUP, key)
            if entry is not None:
                await self._dispose(entry)
                logger.info("Disposed Cosmos client for account %s", entry.account_name)
