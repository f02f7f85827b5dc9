"""Account and database listing with read-through caching."""

import logging
from datetime import timedelta

from azure.cosmos.exceptions import CosmosHttpResponseError

from cosmos_gateway.db.accounts import AccountResolver
from cosmos_gateway.db.cache import CacheService
from cosmos_gateway.db.client_cache import CACHE_GROUP, DEFAULT_TTL, ClientCache
from cosmos_gateway.errors import error_for_status, require, service_error_code
from cosmos_gateway.models.results import AuthMode, RetryPolicyOptions

logger = logging.getLogger(__name__)

DATABASES_KEY_PREFIX = "databases_"


class DatabaseGateway:
    def __init__(
        self,
        accounts: AccountResolver,
        clients: ClientCache,
        cache: CacheService,
        ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        self._accounts = accounts
        self._clients = clients
        self._cache = cache
        self._ttl = ttl

    async def list_accounts(
        self,
        subscription: str,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> list[str]:
        return await self._accounts.list_accounts(subscription, tenant, retry_policy)

    async def list_databases(
        self,
        account_name: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> list[str]:
        """Return database ids in an account, cached per account."""
        require(account_name=account_name, subscription=subscription)

        cache_key = DATABASES_KEY_PREFIX + account_name
        cached = await self._cache.get(CACHE_GROUP, cache_key)
        if cached is not None:
            return cached

        client = await self._clients.get_or_create(
            account_name, subscription, auth_mode, tenant, retry_policy
        )

        databases: list[str] = []
        try:
            async for properties in client.list_databases():
                database_id = properties.get("id")
                if database_id:
                    databases.append(database_id)
        except CosmosHttpResponseError as exc:
            raise error_for_status(
                exc.status_code,
                f"Error listing databases in the account '{account_name}': "
                f"{exc.message}",
                service_error_code(exc),
            ) from exc

        await self._cache.set(CACHE_GROUP, cache_key, databases, self._ttl)
        logger.info("Listed %d databases in account %s", len(databases), account_name)
        return databases
