"""Tests for account and database listing."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from azure.cosmos.exceptions import CosmosHttpResponseError

from cosmos_gateway.db.cache import InMemoryCacheService
from cosmos_gateway.db.databases import DatabaseGateway
from cosmos_gateway.errors import AuthFailureError, ValidationFailureError

SUBSCRIPTION = "00000000-0000-0000-0000-000000000001"


@pytest.fixture
def accounts() -> MagicMock:
    accounts = MagicMock()
    accounts.list_accounts = AsyncMock(return_value=["acct-a", "acct-b"])
    return accounts


@pytest.fixture
def databases(accounts: MagicMock, mock_clients: MagicMock) -> DatabaseGateway:
    return DatabaseGateway(accounts, mock_clients, InMemoryCacheService())


@pytest.mark.asyncio
async def test_list_accounts_delegates_to_resolver(
    databases: DatabaseGateway, accounts: MagicMock
) -> None:
    names = await databases.list_accounts(SUBSCRIPTION, "contoso")

    assert names == ["acct-a", "acct-b"]
    accounts.list_accounts.assert_awaited_once_with(SUBSCRIPTION, "contoso", None)


@pytest.mark.asyncio
async def test_list_databases_reads_through_cache(
    databases: DatabaseGateway, fake_client, mock_clients: MagicMock
) -> None:
    fake_client.add_database("logs")

    first = await databases.list_databases("myaccount", SUBSCRIPTION)
    fake_client.add_database("late")
    second = await databases.list_databases("myaccount", SUBSCRIPTION)

    assert first == ["shop", "logs"]
    assert second == first
    assert fake_client.list_calls == 1
    mock_clients.get_or_create.assert_awaited_once()


@pytest.mark.asyncio
async def test_list_databases_error_is_typed(
    databases: DatabaseGateway, fake_client
) -> None:
    def forbidden(**kwargs):
        raise CosmosHttpResponseError(status_code=403, message="Forbidden")

    fake_client.list_databases = forbidden

    with pytest.raises(AuthFailureError) as exc_info:
        await databases.list_databases("myaccount", SUBSCRIPTION)

    assert "myaccount" in exc_info.value.message


@pytest.mark.asyncio
async def test_list_databases_requires_account(databases: DatabaseGateway) -> None:
    with pytest.raises(ValidationFailureError):
        await databases.list_databases("", SUBSCRIPTION)
