"""Item endpoints: create, upsert, read, delete and query documents.

Bodies are forwarded to ItemGateway as JSON text, so the API stays
schema-agnostic. Each request is wrapped in an OTel span tagged with the
container path.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter
from opentelemetry import trace
from pydantic import BaseModel, Field

from cosmos_gateway.api.dependencies import (
    CallOptionsDep,
    CosmosServiceDep,
    to_http_exception,
)
from cosmos_gateway.errors import CosmosGatewayError
from cosmos_gateway.models.results import ItemOperationResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("cosmos_gateway.api")

router = APIRouter(prefix="/api/cosmos")

ITEMS_PATH = "/{account}/databases/{database}/containers/{container}/items"


class ItemWriteRequest(BaseModel):
    """Request body for create and upsert."""

    item: dict[str, Any]
    partitionKey: str  # noqa: N815


class ItemQueryRequest(BaseModel):
    """Request body for a SQL query."""

    query: str = Field(default="SELECT * FROM c")


@router.post(ITEMS_PATH, status_code=201, response_model=ItemOperationResult)
async def create_item(
    account: str,
    database: str,
    container: str,
    body: ItemWriteRequest,
    cosmos_service: CosmosServiceDep,
    options: CallOptionsDep,
) -> ItemOperationResult:
    """Create an item. Returns 409 if the id already exists in the partition."""
    with tracer.start_as_current_span("item.create") as span:
        span.set_attribute("cosmos.container", f"{account}/{database}/{container}")
        try:
            return await cosmos_service.items.create_item(
                account,
                database,
                container,
                json.dumps(body.item),
                body.partitionKey,
                options.subscription,
                options.auth_mode,
                options.tenant,
                options.retry_policy,
            )
        except CosmosGatewayError as exc:
            span.set_attribute("item.success", False)
            raise to_http_exception(exc) from exc


@router.put(ITEMS_PATH, response_model=ItemOperationResult)
async def upsert_item(
    account: str,
    database: str,
    container: str,
    body: ItemWriteRequest,
    cosmos_service: CosmosServiceDep,
    options: CallOptionsDep,
) -> ItemOperationResult:
    """Create or replace an item."""
    with tracer.start_as_current_span("item.upsert") as span:
        span.set_attribute("cosmos.container", f"{account}/{database}/{container}")
        try:
            return await cosmos_service.items.upsert_item(
                account,
                database,
                container,
                json.dumps(body.item),
                body.partitionKey,
                options.subscription,
                options.auth_mode,
                options.tenant,
                options.retry_policy,
            )
        except CosmosGatewayError as exc:
            span.set_attribute("item.success", False)
            raise to_http_exception(exc) from exc


@router.get(ITEMS_PATH + "/{item_id}")
async def get_item(
    account: str,
    database: str,
    container: str,
    item_id: str,
    partitionKey: str,  # noqa: N803
    cosmos_service: CosmosServiceDep,
    options: CallOptionsDep,
) -> dict:
    """Return the full document for an id and partition key."""
    with tracer.start_as_current_span("item.get") as span:
        span.set_attribute("cosmos.container", f"{account}/{database}/{container}")
        try:
            return await cosmos_service.items.get_item(
                account,
                database,
                container,
                item_id,
                partitionKey,
                options.subscription,
                options.auth_mode,
                options.tenant,
                options.retry_policy,
            )
        except CosmosGatewayError as exc:
            span.set_attribute("item.success", False)
            raise to_http_exception(exc) from exc


@router.delete(ITEMS_PATH + "/{item_id}", response_model=ItemOperationResult)
async def delete_item(
    account: str,
    database: str,
    container: str,
    item_id: str,
    partitionKey: str,  # noqa: N803
    cosmos_service: CosmosServiceDep,
    options: CallOptionsDep,
) -> ItemOperationResult:
    """Delete an item. Returns 404 if it does not exist."""
    with tracer.start_as_current_span("item.delete") as span:
        span.set_attribute("cosmos.container", f"{account}/{database}/{container}")
        try:
            return await cosmos_service.items.delete_item(
                account,
                database,
                container,
                item_id,
                partitionKey,
                options.subscription,
                options.auth_mode,
                options.tenant,
                options.retry_policy,
            )
        except CosmosGatewayError as exc:
            span.set_attribute("item.success", False)
            raise to_http_exception(exc) from exc


@router.post(ITEMS_PATH + "/query")
async def query_items(
    account: str,
    database: str,
    container: str,
    body: ItemQueryRequest,
    cosmos_service: CosmosServiceDep,
    options: CallOptionsDep,
) -> dict:
    """Run a SQL query against the container."""
    with tracer.start_as_current_span("item.query") as span:
        span.set_attribute("cosmos.container", f"{account}/{database}/{container}")
        try:
            items = await cosmos_service.items.query_items(
                account,
                database,
                container,
                options.subscription,
                body.query,
                options.auth_mode,
                options.tenant,
                options.retry_policy,
            )
        except CosmosGatewayError as exc:
            span.set_attribute("item.success", False)
            raise to_http_exception(exc) from exc

    logger.info("Query on %s/%s returned %d items", database, container, len(items))
    return {"items": items, "count": len(items)}
