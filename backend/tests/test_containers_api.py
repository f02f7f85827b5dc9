"""Tests for the account, database and container HTTP endpoints."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from cosmos_gateway.errors import AuthFailureError, ConflictError
from cosmos_gateway.models.results import (
    AuthMode,
    ContainerDetails,
    ContainerOperationResult,
)

SUBSCRIPTION = "00000000-0000-0000-0000-000000000001"
CONTAINERS = "/api/cosmos/myaccount/databases/shop/containers"


@pytest.mark.asyncio
async def test_list_accounts_uses_default_subscription(
    async_client: httpx.AsyncClient, mock_cosmos_service: MagicMock
) -> None:
    mock_cosmos_service.databases.list_accounts = AsyncMock(return_value=["a", "b"])

    async with async_client as client:
        response = await client.get("/api/cosmos/accounts")

    assert response.status_code == 200
    assert response.json() == {"names": ["a", "b"], "count": 2}
    mock_cosmos_service.databases.list_accounts.assert_awaited_once_with(
        SUBSCRIPTION, None, None
    )


@pytest.mark.asyncio
async def test_list_databases(
    async_client: httpx.AsyncClient, mock_cosmos_service: MagicMock
) -> None:
    mock_cosmos_service.databases.list_databases = AsyncMock(return_value=["shop"])

    async with async_client as client:
        response = await client.get(
            "/api/cosmos/myaccount/databases", params={"authMethod": "key"}
        )

    assert response.status_code == 200
    assert response.json()["names"] == ["shop"]
    mock_cosmos_service.databases.list_databases.assert_awaited_once_with(
        "myaccount", SUBSCRIPTION, AuthMode.KEY, None, None
    )


@pytest.mark.asyncio
async def test_auth_failure_maps_to_403(
    async_client: httpx.AsyncClient, mock_cosmos_service: MagicMock
) -> None:
    mock_cosmos_service.databases.list_databases = AsyncMock(
        side_effect=AuthFailureError("Forbidden", status_code=403)
    )

    async with async_client as client:
        response = await client.get("/api/cosmos/myaccount/databases")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_auth_method_is_rejected(
    async_client: httpx.AsyncClient, mock_cosmos_service: MagicMock
) -> None:
    async with async_client as client:
        response = await client.get(
            "/api/cosmos/myaccount/databases", params={"authMethod": "certificate"}
        )

    assert response.status_code == 422
    mock_cosmos_service.databases.list_databases.assert_not_awaited()


@pytest.mark.asyncio
async def test_list_containers(
    async_client: httpx.AsyncClient, mock_cosmos_service: MagicMock
) -> None:
    mock_cosmos_service.containers.list_containers = AsyncMock(
        return_value=["orders", "events"]
    )

    async with async_client as client:
        response = await client.get(CONTAINERS)

    assert response.status_code == 200
    assert response.json() == {"names": ["orders", "events"], "count": 2}


@pytest.mark.asyncio
async def test_get_container_details(
    async_client: httpx.AsyncClient, mock_cosmos_service: MagicMock
) -> None:
    mock_cosmos_service.containers.get_container = AsyncMock(
        return_value=ContainerDetails(
            id="orders",
            partitionKeyPath="/customerId",
            partitionKeyPaths=["/customerId"],
            throughput=None,
        )
    )

    async with async_client as client:
        response = await client.get(f"{CONTAINERS}/orders")

    assert response.status_code == 200
    data = response.json()
    assert data["partitionKeyPath"] == "/customerId"
    assert data["throughput"] is None


@pytest.mark.asyncio
async def test_create_container_returns_201(
    async_client: httpx.AsyncClient, mock_cosmos_service: MagicMock
) -> None:
    mock_cosmos_service.containers.create_container = AsyncMock(
        return_value=ContainerOperationResult(
            container="invoices", partitionKeyPath="/customerId"
        )
    )

    async with async_client as client:
        response = await client.post(
            CONTAINERS,
            json={"name": "invoices", "partitionKeyPath": "/customerId", "throughput": 400},
        )

    assert response.status_code == 201
    assert response.json() == {
        "success": True,
        "container": "invoices",
        "partitionKeyPath": "/customerId",
    }
    mock_cosmos_service.containers.create_container.assert_awaited_once_with(
        "myaccount", "shop", "invoices", "/customerId", SUBSCRIPTION, 400, None, None
    )


@pytest.mark.asyncio
async def test_create_existing_container_maps_to_409(
    async_client: httpx.AsyncClient, mock_cosmos_service: MagicMock
) -> None:
    mock_cosmos_service.containers.create_container = AsyncMock(
        side_effect=ConflictError("Container 'orders' already exists in database 'shop'")
    )

    async with async_client as client:
        response = await client.post(
            CONTAINERS, json={"name": "orders", "partitionKeyPath": "/customerId"}
        )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_rejects_non_positive_throughput(
    async_client: httpx.AsyncClient, mock_cosmos_service: MagicMock
) -> None:
    async with async_client as client:
        response = await client.post(
            CONTAINERS,
            json={"name": "orders", "partitionKeyPath": "/c", "throughput": 0},
        )

    assert response.status_code == 422
    mock_cosmos_service.containers.create_container.assert_not_awaited()
