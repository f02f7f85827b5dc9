"""Agent Framework @tool functions for Cosmos DB item and container operations.

Uses the class-based tool pattern to bind the CosmosService without
module-level globals. Every tool returns JSON text on success and an
"Error: ..." string on failure, so the agent can read the outcome.
"""

import json
import logging
from collections.abc import Awaitable
from typing import Annotated, Any

from agent_framework import tool
from azure.core.exceptions import AzureError
from pydantic import BaseModel

from cosmos_gateway.db.cosmos import CosmosService
from cosmos_gateway.errors import CosmosGatewayError, ValidationFailureError
from cosmos_gateway.models.results import AuthMode

logger = logging.getLogger(__name__)


def _to_json(result: Any) -> str:
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    return json.dumps(result, default=str)


class CosmosCrudTools:
    """Cosmos DB tool functions bound to a CosmosService instance.

    Usage:
        crud = CosmosCrudTools(cosmos_service)
        agent = chat_client.as_agent(
            tools=[crud.create_item, crud.get_item, crud.list_containers],
        )
    """

    def __init__(self, service: CosmosService) -> None:
        """Store the CosmosService reference and its configured defaults."""
        self._service = service
        self._default_subscription = service.settings.azure_subscription_id
        self._default_auth = service.settings.default_auth_mode

    def _subscription(self, subscription: str) -> str:
        return subscription or self._default_subscription

    def _auth_mode(self, auth_method: str) -> AuthMode:
        if not auth_method:
            return self._default_auth
        try:
            return AuthMode(auth_method.lower())
        except ValueError as exc:
            valid = ", ".join(mode.value for mode in AuthMode)
            msg = f"Unknown auth method '{auth_method}'. Valid: {valid}"
            raise ValidationFailureError(msg) from exc

    async def _call(self, action: str, operation: Awaitable[Any]) -> str:
        try:
            return _to_json(await operation)
        except CosmosGatewayError as exc:
            logger.error("Failed to %s: %s", action, exc)
            return f"Error: failed to {action}: {exc}"
        except AzureError as exc:
            logger.error("Failed to %s: %s", action, exc)
            return f"Error: failed to {action}: {exc.message}"

    @tool
    async def list_accounts(
        self,
        subscription: Annotated[str, "Subscription id"] = "",
    ) -> str:
        """List the Cosmos DB account names in a subscription."""
        return await self._call(
            "list accounts",
            self._service.databases.list_accounts(self._subscription(subscription)),
        )

    @tool
    async def list_databases(
        self,
        account: Annotated[str, "Cosmos DB account name"],
        subscription: Annotated[str, "Subscription id"] = "",
        auth_method: Annotated[str, "Authentication: credential or key"] = "",
    ) -> str:
        """List the databases in a Cosmos DB account."""
        try:
            mode = self._auth_mode(auth_method)
        except ValidationFailureError as exc:
            return f"Error: {exc}"
        return await self._call(
            f"list databases in {account}",
            self._service.databases.list_databases(
                account, self._subscription(subscription), mode
            ),
        )

    @tool
    async def list_containers(
        self,
        account: Annotated[str, "Cosmos DB account name"],
        database: Annotated[str, "Database name"],
        subscription: Annotated[str, "Subscription id"] = "",
        auth_method: Annotated[str, "Authentication: credential or key"] = "",
    ) -> str:
        """List the containers in a database."""
        try:
            mode = self._auth_mode(auth_method)
        except ValidationFailureError as exc:
            return f"Error: {exc}"
        return await self._call(
            f"list containers in {account}/{database}",
            self._service.containers.list_containers(
                account, database, self._subscription(subscription), mode
            ),
        )

    @tool
    async def get_container(
        self,
        account: Annotated[str, "Cosmos DB account name"],
        database: Annotated[str, "Database name"],
        container: Annotated[str, "Container name"],
        subscription: Annotated[str, "Subscription id"] = "",
        auth_method: Annotated[str, "Authentication: credential or key"] = "",
    ) -> str:
        """Get container metadata: partition key paths, policies, TTL and throughput.

        Use this to discover the partition key path before creating items.
        """
        try:
            mode = self._auth_mode(auth_method)
        except ValidationFailureError as exc:
            return f"Error: {exc}"
        return await self._call(
            f"get container {container}",
            self._service.containers.get_container(
                account, database, container, self._subscription(subscription), mode
            ),
        )

    @tool
    async def create_container(
        self,
        account: Annotated[str, "Cosmos DB account name"],
        database: Annotated[str, "Database name"],
        container: Annotated[str, "Container name"],
        partition_key_path: Annotated[str, "Partition key path, e.g. /tenantId"],
        throughput: Annotated[
            int | None, "Provisioned RU/s; omit for serverless or shared throughput"
        ] = None,
        subscription: Annotated[str, "Subscription id"] = "",
    ) -> str:
        """Create a container. Fails if a container with the same name exists."""
        return await self._call(
            f"create container {container}",
            self._service.containers.create_container(
                account,
                database,
                container,
                partition_key_path,
                self._subscription(subscription),
                throughput,
            ),
        )

    @tool
    async def create_item(
        self,
        account: Annotated[str, "Cosmos DB account name"],
        database: Annotated[str, "Database name"],
        container: Annotated[str, "Container name"],
        item: Annotated[str, "The JSON document to create; must include 'id'"],
        partition_key: Annotated[str, "Partition key value of the item"],
        subscription: Annotated[str, "Subscription id"] = "",
        auth_method: Annotated[str, "Authentication: credential or key"] = "",
    ) -> str:
        """Create an item. Fails with 409 if the id and partition key already exist."""
        try:
            mode = self._auth_mode(auth_method)
        except ValidationFailureError as exc:
            return f"Error: {exc}"
        return await self._call(
            f"create item in {container}",
            self._service.items.create_item(
                account,
                database,
                container,
                item,
                partition_key,
                self._subscription(subscription),
                mode,
            ),
        )

    @tool
    async def upsert_item(
        self,
        account: Annotated[str, "Cosmos DB account name"],
        database: Annotated[str, "Database name"],
        container: Annotated[str, "Container name"],
        item: Annotated[str, "The JSON document to create or replace"],
        partition_key: Annotated[str, "Partition key value of the item"],
        subscription: Annotated[str, "Subscription id"] = "",
        auth_method: Annotated[str, "Authentication: credential or key"] = "",
    ) -> str:
        """Create an item, or replace it if it already exists."""
        try:
            mode = self._auth_mode(auth_method)
        except ValidationFailureError as exc:
            return f"Error: {exc}"
        return await self._call(
            f"upsert item in {container}",
            self._service.items.upsert_item(
                account,
                database,
                container,
                item,
                partition_key,
                self._subscription(subscription),
                mode,
            ),
        )

    @tool
    async def get_item(
        self,
        account: Annotated[str, "Cosmos DB account name"],
        database: Annotated[str, "Database name"],
        container: Annotated[str, "Container name"],
        item_id: Annotated[str, "Item id"],
        partition_key: Annotated[str, "Partition key value of the item"],
        subscription: Annotated[str, "Subscription id"] = "",
        auth_method: Annotated[str, "Authentication: credential or key"] = "",
    ) -> str:
        """Read a single item by id and partition key."""
        try:
            mode = self._auth_mode(auth_method)
        except ValidationFailureError as exc:
            return f"Error: {exc}"
        return await self._call(
            f"read item {item_id} from {container}",
            self._service.items.get_item(
                account,
                database,
                container,
                item_id,
                partition_key,
                self._subscription(subscription),
                mode,
            ),
        )

    @tool
    async def delete_item(
        self,
        account: Annotated[str, "Cosmos DB account name"],
        database: Annotated[str, "Database name"],
        container: Annotated[str, "Container name"],
        item_id: Annotated[str, "Item id"],
        partition_key: Annotated[str, "Partition key value of the item"],
        subscription: Annotated[str, "Subscription id"] = "",
        auth_method: Annotated[str, "Authentication: credential or key"] = "",
    ) -> str:
        """Delete a single item by id and partition key."""
        try:
            mode = self._auth_mode(auth_method)
        except ValidationFailureError as exc:
            return f"Error: {exc}"
        return await self._call(
            f"delete item {item_id} from {container}",
            self._service.items.delete_item(
                account,
                database,
                container,
                item_id,
                partition_key,
                self._subscription(subscription),
                mode,
            ),
        )

    @tool
    async def query_items(
        self,
        account: Annotated[str, "Cosmos DB account name"],
        database: Annotated[str, "Database name"],
        container: Annotated[str, "Container name"],
        query: Annotated[str, "Cosmos DB SQL query"] = "SELECT * FROM c",
        subscription: Annotated[str, "Subscription id"] = "",
        auth_method: Annotated[str, "Authentication: credential or key"] = "",
    ) -> str:
        """Run a SQL query against a container and return all matching items."""
        try:
            mode = self._auth_mode(auth_method)
        except ValidationFailureError as exc:
            return f"Error: {exc}"
        return await self._call(
            f"query items in {container}",
            self._service.items.query_items(
                account,
                database,
                container,
                self._subscription(subscription),
                query,
                mode,
            ),
        )
