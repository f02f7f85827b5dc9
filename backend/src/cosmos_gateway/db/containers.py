"""Container listing, inspection and creation.

Reads and writes go through different API surfaces. Listing and reading use
the cached data-plane client (DataPlaneContainerReader). Creation goes
through the management plane (ManagementContainerAdministrator), which owns
container definitions. ContainerGateway composes the two.
"""

import logging
from datetime import timedelta
from http import HTTPStatus
from typing import Any, Protocol

from azure.core.exceptions import HttpResponseError
from azure.cosmos.exceptions import CosmosHttpResponseError
from azure.mgmt.cosmosdb.models import (
    ContainerPartitionKey,
    CreateUpdateOptions,
    SqlContainerCreateUpdateParameters,
    SqlContainerResource,
)

from cosmos_gateway.db.accounts import AccountResolver
from cosmos_gateway.db.cache import CacheService
from cosmos_gateway.db.client_cache import CACHE_GROUP, DEFAULT_TTL, ClientCache
from cosmos_gateway.db.subscriptions import SubscriptionService
from cosmos_gateway.errors import (
    ConflictError,
    NotFoundError,
    OperationFailedError,
    error_for_status,
    require,
    service_error_code,
)
from cosmos_gateway.models.results import (
    AuthMode,
    ContainerDetails,
    ContainerOperationResult,
    RetryPolicyOptions,
)

logger = logging.getLogger(__name__)

CONTAINERS_KEY_PREFIX = "containers_"


class ContainerReader(Protocol):
    async def list_containers(
        self,
        account_name: str,
        database_name: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> list[str]: ...

    async def read_container(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> ContainerDetails: ...


class ContainerAdministrator(Protocol):
    async def create_container(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        partition_key_path: str,
        subscription: str,
        throughput: int | None = None,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> ContainerOperationResult: ...


def container_details(
    properties: dict[str, Any], throughput: int | None
) -> ContainerDetails:
    """Normalize a raw container definition into ContainerDetails."""
    paths = [
        path
        for path in (properties.get("partitionKey") or {}).get("paths", [])
        if path
    ]
    return ContainerDetails(
        id=properties["id"],
        partitionKeyPath=paths[0] if paths else None,
        partitionKeyPaths=paths,
        defaultTimeToLive=properties.get("defaultTtl"),
        indexingPolicy=properties.get("indexingPolicy"),
        uniqueKeyPolicy=properties.get("uniqueKeyPolicy"),
        etag=properties.get("_etag"),
        lastModifiedTimestamp=properties.get("_ts"),
        throughput=throughput,
    )


class DataPlaneContainerReader:
    """Lists and reads containers through the cached data-plane client."""

    def __init__(
        self,
        clients: ClientCache,
        cache: CacheService,
        ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        self._clients = clients
        self._cache = cache
        self._ttl = ttl

    async def list_containers(
        self,
        account_name: str,
        database_name: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> list[str]:
        """Return container ids in a database, cached per account and database."""
        cache_key = f"{CONTAINERS_KEY_PREFIX}{account_name}_{database_name}"
        cached = await self._cache.get(CACHE_GROUP, cache_key)
        if cached is not None:
            return cached

        client = await self._clients.get_or_create(
            account_name, subscription, auth_mode, tenant, retry_policy
        )
        database = client.get_database_client(database_name)

        containers: list[str] = []
        try:
            async for properties in database.list_containers():
                container_id = properties.get("id")
                if container_id:
                    containers.append(container_id)
        except CosmosHttpResponseError as exc:
            raise error_for_status(
                exc.status_code,
                f"Error listing containers in database '{database_name}' "
                f"of account '{account_name}': {exc.message}",
                service_error_code(exc),
            ) from exc

        await self._cache.set(CACHE_GROUP, cache_key, containers, self._ttl)
        return containers

    async def read_container(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> ContainerDetails:
        """Read a container definition plus its container-level throughput.

        Raises:
            NotFoundError: If the container does not exist.
        """
        client = await self._clients.get_or_create(
            account_name, subscription, auth_mode, tenant, retry_policy
        )
        container = client.get_database_client(database_name).get_container_client(
            container_name
        )

        try:
            properties = await container.read()
        except CosmosHttpResponseError as exc:
            if exc.status_code == HTTPStatus.NOT_FOUND:
                msg = (
                    f"Container '{container_name}' not found "
                    f"in database '{database_name}'"
                )
                raise NotFoundError(msg) from exc
            raise error_for_status(
                exc.status_code,
                f"Error getting container '{container_name}': {exc.message}",
                service_error_code(exc),
            ) from exc

        throughput = await self._read_throughput(container, container_name)
        return container_details(properties, throughput)

    async def _read_throughput(self, container: Any, container_name: str) -> int | None:
        """Return provisioned RU/s, or None when there is no container offer."""
        try:
            offer = await container.get_throughput()
        except CosmosHttpResponseError as exc:
            if exc.status_code == HTTPStatus.NOT_FOUND:
                # Serverless, or throughput shared at the database level.
                return None
            raise error_for_status(
                exc.status_code,
                f"Error reading throughput of '{container_name}': {exc.message}",
                service_error_code(exc),
            ) from exc

        if offer.offer_throughput is not None:
            return offer.offer_throughput
        return offer.auto_scale_max_throughput


class ManagementContainerAdministrator:
    """Creates containers through the Cosmos DB management plane."""

    def __init__(
        self, accounts: AccountResolver, subscriptions: SubscriptionService
    ) -> None:
        self._accounts = accounts
        self._subscriptions = subscriptions

    async def create_container(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        partition_key_path: str,
        subscription: str,
        throughput: int | None = None,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> ContainerOperationResult:
        """Create a hash-partitioned container and wait for the operation.

        Raises:
            ConflictError: If the container already exists.
            OperationFailedError: For any other failure status.
        """
        account = await self._accounts.resolve(
            subscription, account_name, tenant, retry_policy
        )
        handle = await self._subscriptions.get_subscription(
            subscription, tenant, retry_policy
        )

        parameters = SqlContainerCreateUpdateParameters(
            location=account.location,
            resource=SqlContainerResource(
                id=container_name,
                partition_key=ContainerPartitionKey(
                    paths=[partition_key_path], kind="Hash"
                ),
            ),
            options=CreateUpdateOptions(throughput=throughput)
            if throughput is not None
            else None,
        )

        try:
            async with handle.management_client(retry_policy) as mgmt:
                await mgmt.sql_resources.get_sql_database(
                    account.resource_group, account.name, database_name
                )
                poller = await mgmt.sql_resources.begin_create_update_sql_container(
                    account.resource_group,
                    account.name,
                    database_name,
                    container_name,
                    parameters,
                )
                await poller.result()
        except HttpResponseError as exc:
            if exc.status_code == HTTPStatus.CONFLICT:
                msg = (
                    f"Container '{container_name}' already exists "
                    f"in database '{database_name}'"
                )
                raise ConflictError(msg) from exc
            if exc.status_code == HTTPStatus.NOT_FOUND:
                msg = f"Database '{database_name}' not found in account '{account_name}'"
                raise NotFoundError(msg, error_code=service_error_code(exc)) from exc
            raise OperationFailedError(
                f"Error creating container '{container_name}': {exc.message}",
                status_code=exc.status_code,
                error_code=service_error_code(exc),
            ) from exc

        logger.info(
            "Created container %s in %s/%s (partitionKey=%s, throughput=%s)",
            container_name,
            account_name,
            database_name,
            partition_key_path,
            throughput,
        )
        return ContainerOperationResult(
            success=True,
            container=container_name,
            partitionKeyPath=partition_key_path,
        )


class ContainerGateway:
    """Container operations, routed to the reader or the administrator.

    Usage:
        containers = ContainerGateway(reader, administrator)
        details = await containers.get_container("myaccount", "shop", "orders", sub)
    """

    def __init__(
        self, reader: ContainerReader, administrator: ContainerAdministrator
    ) -> None:
        self._reader = reader
        self._administrator = administrator

    async def list_containers(
        self,
        account_name: str,
        database_name: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> list[str]:
        require(
            account_name=account_name,
            database_name=database_name,
            subscription=subscription,
        )
        return await self._reader.list_containers(
            account_name, database_name, subscription, auth_mode, tenant, retry_policy
        )

    async def get_container(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> ContainerDetails:
        require(
            account_name=account_name,
            database_name=database_name,
            container_name=container_name,
            subscription=subscription,
        )
        return await self._reader.read_container(
            account_name,
            database_name,
            container_name,
            subscription,
            auth_mode,
            tenant,
            retry_policy,
        )

    async def create_container(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        partition_key_path: str,
        subscription: str,
        throughput: int | None = None,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> ContainerOperationResult:
        require(
            account_name=account_name,
            database_name=database_name,
            container_name=container_name,
            partition_key_path=partition_key_path,
            subscription=subscription,
        )
        return await self._administrator.create_container(
            account_name,
            database_name,
            container_name,
            partition_key_path,
            subscription,
            throughput,
            tenant,
            retry_policy,
        )
