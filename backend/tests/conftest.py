"""Shared test fixtures for the Cosmos DB gateway.

The fake data-plane classes below keep documents in memory and raise the
same azure.cosmos exceptions the service would, so gateway error mapping is
exercised without any Azure calls.
"""

from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from azure.cosmos.exceptions import (
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)
from fastapi import FastAPI

from cosmos_gateway.api.containers import router as containers_router
from cosmos_gateway.api.health import router as health_router
from cosmos_gateway.api.items import router as items_router
from cosmos_gateway.auth import APIKeyMiddleware
from cosmos_gateway.config import Settings

TEST_API_KEY = "test-api-key-12345"
TEST_SUBSCRIPTION = "00000000-0000-0000-0000-000000000001"


async def aiter_of(values: list[Any]) -> AsyncIterator[Any]:
    """Async iterator over a list, shaped like the SDK's paged results."""
    for value in values:
        yield value


class FakeContainer:
    """In-memory container keyed by (id, partition key value)."""

    def __init__(
        self,
        container_id: str,
        partition_key_path: str = "/pk",
        throughput: int | None = None,
        exists: bool = True,
    ) -> None:
        self.id = container_id
        self.partition_key_path = partition_key_path
        self.throughput = throughput
        self.exists = exists
        self.items: dict[tuple[str, str], dict[str, Any]] = {}

    def _key(self, body: dict[str, Any]) -> tuple[str, str]:
        return body["id"], str(body.get(self.partition_key_path.lstrip("/")))

    def _not_found(self) -> CosmosResourceNotFoundError:
        return CosmosResourceNotFoundError(
            status_code=404, message="Entity with the specified id does not exist"
        )

    async def create_item(self, body: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        key = self._key(body)
        if key in self.items:
            raise CosmosResourceExistsError(
                status_code=409,
                message="Entity with the specified id already exists in the system.",
            )
        self.items[key] = dict(body)
        return dict(body)

    async def upsert_item(self, body: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        self.items[self._key(body)] = dict(body)
        return dict(body)

    async def read_item(self, item: str, partition_key: str, **kwargs: Any) -> dict:
        try:
            return dict(self.items[(item, str(partition_key))])
        except KeyError:
            raise self._not_found() from None

    async def delete_item(self, item: str, partition_key: str, **kwargs: Any) -> None:
        if self.items.pop((item, str(partition_key)), None) is None:
            raise self._not_found()

    def query_items(self, query: str, **kwargs: Any) -> AsyncIterator[dict[str, Any]]:
        self.last_query = query
        return aiter_of([dict(item) for item in self.items.values()])

    async def read(self, **kwargs: Any) -> dict[str, Any]:
        if not self.exists:
            raise self._not_found()
        return {
            "id": self.id,
            "partitionKey": {"paths": [self.partition_key_path], "kind": "Hash"},
            "defaultTtl": 3600,
            "indexingPolicy": {"indexingMode": "consistent"},
            "uniqueKeyPolicy": {"uniqueKeys": []},
            "_etag": '"00000000-0000-0000-0000-000000000000"',
            "_ts": 1700000000,
        }

    async def get_throughput(self, **kwargs: Any) -> SimpleNamespace:
        if self.throughput is None:
            raise self._not_found()
        return SimpleNamespace(
            offer_throughput=self.throughput, auto_scale_max_throughput=None
        )


class FakeDatabase:
    def __init__(self, database_id: str) -> None:
        self.id = database_id
        self.containers: dict[str, FakeContainer] = {}
        self.list_calls = 0

    def add_container(
        self,
        container_id: str,
        partition_key_path: str = "/pk",
        throughput: int | None = None,
    ) -> FakeContainer:
        container = FakeContainer(container_id, partition_key_path, throughput)
        self.containers[container_id] = container
        return container

    def get_container_client(self, container_name: str) -> FakeContainer:
        # The SDK hands out proxies without I/O; missing containers 404 on use.
        container = self.containers.get(container_name)
        if container is None:
            return FakeContainer(container_name, exists=False)
        return container

    def list_containers(self, **kwargs: Any) -> AsyncIterator[dict[str, Any]]:
        self.list_calls += 1
        return aiter_of([{"id": name} for name in self.containers])


class FakeCosmosClient:
    """Stands in for azure.cosmos.aio.CosmosClient."""

    def __init__(self) -> None:
        self.databases: dict[str, FakeDatabase] = {}
        self.list_calls = 0
        self.close = AsyncMock()

    def add_database(self, database_id: str) -> FakeDatabase:
        return self.databases.setdefault(database_id, FakeDatabase(database_id))

    def get_database_client(self, database_name: str) -> FakeDatabase:
        return self.add_database(database_name)

    def list_databases(self, **kwargs: Any) -> AsyncIterator[dict[str, Any]]:
        self.list_calls += 1
        return aiter_of([{"id": name} for name in self.databases])


@pytest.fixture
def settings() -> Settings:
    """Provide test-safe settings with placeholder values."""
    return Settings(
        azure_subscription_id=TEST_SUBSCRIPTION,
        key_vault_url="https://test-vault.vault.azure.net/",
        enable_instrumentation=False,
    )


@pytest.fixture
def fake_client() -> FakeCosmosClient:
    """A fake client with a 'shop' database holding an 'orders' container."""
    client = FakeCosmosClient()
    client.add_database("shop").add_container(
        "orders", partition_key_path="/customerId", throughput=400
    )
    return client


@pytest.fixture
def mock_clients(fake_client: FakeCosmosClient) -> MagicMock:
    """A ClientCache stand-in that always returns fake_client."""
    clients = MagicMock()
    clients.get_or_create = AsyncMock(return_value=fake_client)
    return clients


@pytest.fixture
def mock_cosmos_service(settings: Settings) -> MagicMock:
    """A CosmosService whose gateways are all mocks.

    Every gateway method is an AsyncMock; tests set return values or side
    effects as needed. No real Azure calls are made.
    """
    service = MagicMock()
    service.settings = settings
    for gateway, methods in {
        "items": [
            "create_item",
            "upsert_item",
            "get_item",
            "delete_item",
            "query_items",
        ],
        "containers": ["list_containers", "get_container", "create_container"],
        "databases": ["list_accounts", "list_databases"],
    }.items():
        for method in methods:
            setattr(getattr(service, gateway), method, AsyncMock())
    service.cache.get_group_keys = AsyncMock(return_value=[])
    return service


@pytest.fixture
def app_with_mocks(mock_cosmos_service: MagicMock) -> FastAPI:
    """Create the FastAPI app with a mocked CosmosService.

    Includes the real APIKeyMiddleware with a known test key and the real
    health, item and container routers.
    """
    app = FastAPI()
    app.include_router(health_router)
    app.include_router(items_router)
    app.include_router(containers_router)
    app.state.cosmos_service = mock_cosmos_service
    app.add_middleware(APIKeyMiddleware, api_key=TEST_API_KEY)
    return app


@pytest.fixture
def async_client(app_with_mocks: FastAPI) -> httpx.AsyncClient:
    """Create an httpx.AsyncClient bound to the app_with_mocks fixture."""
    transport = httpx.ASGITransport(app=app_with_mocks)
    return httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {TEST_API_KEY}"},
    )
