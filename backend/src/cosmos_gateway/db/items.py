"""Schema-agnostic item CRUD over the cached data-plane client.

Callers pass item bodies as JSON text and receive plain dicts back; no
document model is applied. The item id reported for create and upsert is
taken from the caller's JSON, not from the service response, and the body
must carry the caller's partition key at the container's partition key path.
"""

import json
import logging
from datetime import timedelta
from http import HTTPStatus
from typing import Any

from azure.cosmos.aio import ContainerProxy
from azure.cosmos.exceptions import CosmosHttpResponseError

from cosmos_gateway.db.cache import CacheService, InMemoryCacheService
from cosmos_gateway.db.client_cache import CACHE_GROUP, DEFAULT_TTL, ClientCache
from cosmos_gateway.errors import (
    ConflictError,
    NotFoundError,
    OperationFailedError,
    ValidationFailureError,
    error_for_status,
    require,
    service_error_code,
)
from cosmos_gateway.models.results import (
    AuthMode,
    ItemOperationResult,
    RetryPolicyOptions,
)

logger = logging.getLogger(__name__)

DEFAULT_QUERY = "SELECT * FROM c"
PARTITION_KEY_PATHS_PREFIX = "partition_key_paths_"


def parse_item(item: str) -> tuple[dict[str, Any], str]:
    """Parse caller JSON into a document and return it with its id.

    Raises:
        ValidationFailureError: If the text is not a JSON object with an id.
    """
    try:
        document = json.loads(item)
    except json.JSONDecodeError as exc:
        msg = f"Item is not valid JSON: {exc.msg}"
        raise ValidationFailureError(msg) from exc

    if not isinstance(document, dict):
        raise ValidationFailureError("Item must be a JSON object")

    item_id = document.get("id")
    if not isinstance(item_id, str) or not item_id:
        raise ValidationFailureError("Item must contain a non-empty string 'id'")
    return document, item_id


def partition_key_value(document: dict[str, Any], path: str) -> Any:
    """Return the value at a partition key path such as '/customerId' or '/a/b'.

    A missing property yields None.
    """
    value: Any = document
    for segment in path.strip("/").split("/"):
        if not isinstance(value, dict):
            return None
        value = value.get(segment)
    return value


def check_partition_key(
    document: dict[str, Any], paths: list[str], partition_key: str
) -> None:
    """Raise ValidationFailureError unless the body carries partition_key.

    Only the first path is compared; the caller's key is a single string.
    """
    if not paths:
        return
    value = partition_key_value(document, paths[0])
    if value != partition_key:
        msg = (
            f"Item value at partition key path '{paths[0]}' is {json.dumps(value)}, "
            f"which does not match partition_key '{partition_key}'"
        )
        raise ValidationFailureError(msg)


def _failed(exc: CosmosHttpResponseError, action: str) -> OperationFailedError:
    return OperationFailedError(
        f"Failed to {action}: {exc.message}",
        status_code=exc.status_code,
        error_code=service_error_code(exc),
    )


class ItemGateway:
    """Create, upsert, read, delete and query items in a container.

    Usage:
        items = ItemGateway(client_cache)
        result = await items.create_item(
            "myaccount", "shop", "orders", '{"id": "o1"}', "o1", subscription_id
        )
    """

    def __init__(
        self,
        clients: ClientCache,
        cache: CacheService | None = None,
        ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        self._clients = clients
        self._cache = cache if cache is not None else InMemoryCacheService()
        self._ttl = ttl

    async def _partition_key_paths(
        self,
        container: ContainerProxy,
        account_name: str,
        database_name: str,
        container_name: str,
    ) -> list[str]:
        """Return the container's partition key paths, cached per container."""
        cache_key = (
            f"{PARTITION_KEY_PATHS_PREFIX}{account_name}_{database_name}_{container_name}"
        )
        cached = await self._cache.get(CACHE_GROUP, cache_key)
        if cached is not None:
            return cached

        try:
            properties = await container.read()
        except CosmosHttpResponseError as exc:
            if exc.status_code == HTTPStatus.NOT_FOUND:
                msg = (
                    f"Container '{container_name}' not found "
                    f"in database '{database_name}'"
                )
                raise NotFoundError(msg) from exc
            raise _failed(exc, f"read container '{container_name}'") from exc

        paths = [
            path
            for path in (properties.get("partitionKey") or {}).get("paths", [])
            if path
        ]
        await self._cache.set(CACHE_GROUP, cache_key, paths, self._ttl)
        return paths

    async def _container(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        subscription: str,
        auth_mode: AuthMode,
        tenant: str | None,
        retry_policy: RetryPolicyOptions | None,
    ) -> ContainerProxy:
        client = await self._clients.get_or_create(
            account_name, subscription, auth_mode, tenant, retry_policy
        )
        database = client.get_database_client(database_name)
        return database.get_container_client(container_name)

    async def create_item(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        item: str,
        partition_key: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> ItemOperationResult:
        """Create a new item.

        Raises:
            ConflictError: If an item with the same id and partition key exists.
        """
        require(
            account_name=account_name,
            database_name=database_name,
            container_name=container_name,
            item=item,
            partition_key=partition_key,
            subscription=subscription,
        )
        document, item_id = parse_item(item)
        container = await self._container(
            account_name, database_name, container_name,
            subscription, auth_mode, tenant, retry_policy,
        )
        paths = await self._partition_key_paths(
            container, account_name, database_name, container_name
        )
        check_partition_key(document, paths, partition_key)

        try:
            await container.create_item(body=document)
        except CosmosHttpResponseError as exc:
            if exc.status_code == HTTPStatus.CONFLICT:
                msg = f"Item already exists in container '{container_name}'"
                raise ConflictError(msg) from exc
            raise _failed(exc, f"create item '{item_id}'") from exc

        logger.info("Created item %s in %s/%s", item_id, database_name, container_name)
        return ItemOperationResult(success=True, id=item_id, partitionKey=partition_key)

    async def upsert_item(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        item: str,
        partition_key: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> ItemOperationResult:
        """Create or replace an item. Any failure status is OperationFailedError."""
        require(
            account_name=account_name,
            database_name=database_name,
            container_name=container_name,
            item=item,
            partition_key=partition_key,
            subscription=subscription,
        )
        document, item_id = parse_item(item)
        container = await self._container(
            account_name, database_name, container_name,
            subscription, auth_mode, tenant, retry_policy,
        )
        paths = await self._partition_key_paths(
            container, account_name, database_name, container_name
        )
        check_partition_key(document, paths, partition_key)

        try:
            await container.upsert_item(body=document)
        except CosmosHttpResponseError as exc:
            raise _failed(exc, f"upsert item '{item_id}'") from exc

        logger.info("Upserted item %s in %s/%s", item_id, database_name, container_name)
        return ItemOperationResult(success=True, id=item_id, partitionKey=partition_key)

    async def get_item(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        item_id: str,
        partition_key: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> dict[str, Any]:
        """Read an item's full JSON body.

        Raises:
            NotFoundError: If no item has this id and partition key.
        """
        require(
            account_name=account_name,
            database_name=database_name,
            container_name=container_name,
            item_id=item_id,
            partition_key=partition_key,
            subscription=subscription,
        )
        container = await self._container(
            account_name, database_name, container_name,
            subscription, auth_mode, tenant, retry_policy,
        )

        try:
            item = await container.read_item(item=item_id, partition_key=partition_key)
        except CosmosHttpResponseError as exc:
            if exc.status_code == HTTPStatus.NOT_FOUND:
                msg = f"Item '{item_id}' not found in container '{container_name}'"
                raise NotFoundError(msg) from exc
            raise _failed(exc, f"read item '{item_id}'") from exc

        return dict(item)

    async def delete_item(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        item_id: str,
        partition_key: str,
        subscription: str,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> ItemOperationResult:
        """Delete an item. Deleting a missing item raises NotFoundError."""
        require(
            account_name=account_name,
            database_name=database_name,
            container_name=container_name,
            item_id=item_id,
            partition_key=partition_key,
            subscription=subscription,
        )
        container = await self._container(
            account_name, database_name, container_name,
            subscription, auth_mode, tenant, retry_policy,
        )

        try:
            await container.delete_item(item=item_id, partition_key=partition_key)
        except CosmosHttpResponseError as exc:
            if exc.status_code == HTTPStatus.NOT_FOUND:
                msg = f"Item '{item_id}' not found in container '{container_name}'"
                raise NotFoundError(msg) from exc
            raise _failed(exc, f"delete item '{item_id}'") from exc

        logger.info("Deleted item %s from %s/%s", item_id, database_name, container_name)
        return ItemOperationResult(success=True, id=item_id, partitionKey=partition_key)

    async def query_items(
        self,
        account_name: str,
        database_name: str,
        container_name: str,
        subscription: str,
        query: str | None = None,
        auth_mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> list[dict[str, Any]]:
        """Run a SQL query across all partitions and return every result."""
        require(
            account_name=account_name,
            database_name=database_name,
            container_name=container_name,
            subscription=subscription,
        )
        container = await self._container(
            account_name, database_name, container_name,
            subscription, auth_mode, tenant, retry_policy,
        )

        items: list[dict[str, Any]] = []
        try:
            async for item in container.query_items(query=query or DEFAULT_QUERY):
                items.append(item)
        except CosmosHttpResponseError as exc:
            raise error_for_status(
                exc.status_code,
                f"Error querying items in '{container_name}': {exc.message}",
                service_error_code(exc),
            ) from exc

        return items
