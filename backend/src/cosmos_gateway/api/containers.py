"""Account, database and container endpoints.

Listing and reading go through the data plane; POST creates a container
through the management plane.
"""

from fastapi import APIRouter
from opentelemetry import trace
from pydantic import BaseModel, Field

from cosmos_gateway.api.dependencies import (
    CallOptionsDep,
    CosmosServiceDep,
    to_http_exception,
)
from cosmos_gateway.errors import CosmosGatewayError
from cosmos_gateway.models.results import ContainerDetails, ContainerOperationResult

tracer = trace.get_tracer("cosmos_gateway.api")

router = APIRouter(prefix="/api/cosmos")


class NameListResponse(BaseModel):
    """A list of resource names."""

    names: list[str]
    count: int


class ContainerCreateRequest(BaseModel):
    """Request body for container creation."""

    name: str
    partitionKeyPath: str  # noqa: N815
    throughput: int | None = Field(default=None, gt=0)


@router.get("/accounts", response_model=NameListResponse)
async def list_accounts(
    cosmos_service: CosmosServiceDep,
    options: CallOptionsDep,
) -> NameListResponse:
    """List the Cosmos DB accounts in the subscription."""
    try:
        names = await cosmos_service.databases.list_accounts(
            options.subscription, options.tenant, options.retry_policy
        )
    except CosmosGatewayError as exc:
        raise to_http_exception(exc) from exc
    return NameListResponse(names=names, count=len(names))


@router.get("/{account}/databases", response_model=NameListResponse)
async def list_databases(
    account: str,
    cosmos_service: CosmosServiceDep,
    options: CallOptionsDep,
) -> NameListResponse:
    """List the databases in an account."""
    try:
        names = await cosmos_service.databases.list_databases(
            account,
            options.subscription,
            options.auth_mode,
            options.tenant,
            options.retry_policy,
        )
    except CosmosGatewayError as exc:
        raise to_http_exception(exc) from exc
    return NameListResponse(names=names, count=len(names))


@router.get("/{account}/databases/{database}/containers", response_model=NameListResponse)
async def list_containers(
    account: str,
    database: str,
    cosmos_service: CosmosServiceDep,
    options: CallOptionsDep,
) -> NameListResponse:
    """List the containers in a database."""
    try:
        names = await cosmos_service.containers.list_containers(
            account,
            database,
            options.subscription,
            options.auth_mode,
            options.tenant,
            options.retry_policy,
        )
    except CosmosGatewayError as exc:
        raise to_http_exception(exc) from exc
    return NameListResponse(names=names, count=len(names))


@router.get(
    "/{account}/databases/{database}/containers/{container}",
    response_model=ContainerDetails,
)
async def get_container(
    account: str,
    database: str,
    container: str,
    cosmos_service: CosmosServiceDep,
    options: CallOptionsDep,
) -> ContainerDetails:
    """Return container metadata, including throughput (null when serverless)."""
    try:
        return await cosmos_service.containers.get_container(
            account,
            database,
            container,
            options.subscription,
            options.auth_mode,
            options.tenant,
            options.retry_policy,
        )
    except CosmosGatewayError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/{account}/databases/{database}/containers",
    status_code=201,
    response_model=ContainerOperationResult,
)
async def create_container(
    account: str,
    database: str,
    body: ContainerCreateRequest,
    cosmos_service: CosmosServiceDep,
    options: CallOptionsDep,
) -> ContainerOperationResult:
    """Create a container. Returns 409 if it already exists."""
    with tracer.start_as_current_span("container.create") as span:
        span.set_attribute("cosmos.container", f"{account}/{database}/{body.name}")
        span.set_attribute("cosmos.partition_key_path", body.partitionKeyPath)
        try:
            result = await cosmos_service.containers.create_container(
                account,
                database,
                body.name,
                body.partitionKeyPath,
                options.subscription,
                body.throughput,
                options.tenant,
                options.retry_policy,
            )
        except CosmosGatewayError as exc:
            span.set_attribute("container.success", False)
            raise to_http_exception(exc) from exc

        span.set_attribute("container.success", True)
        return result
