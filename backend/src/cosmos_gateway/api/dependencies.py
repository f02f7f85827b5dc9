"""Shared request plumbing for the Cosmos API routers.

Resolves the CosmosService from app.state, binds the per-call options every
Cosmos endpoint accepts, and maps gateway errors onto HTTP responses.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request

from cosmos_gateway.db.cosmos import CosmosService
from cosmos_gateway.errors import CosmosGatewayError
from cosmos_gateway.models.results import AuthMode, RetryPolicyOptions


@dataclass(frozen=True)
class CallOptions:
    """Per-call options shared by every Cosmos endpoint."""

    subscription: str
    auth_mode: AuthMode
    tenant: str | None
    retry_policy: RetryPolicyOptions | None


def get_cosmos_service(request: Request) -> CosmosService:
    """Return the CosmosService created by the lifespan, or fail with 503."""
    cosmos_service = getattr(request.app.state, "cosmos_service", None)
    if cosmos_service is None:
        raise HTTPException(
            status_code=503,
            detail="Cosmos DB not configured. Cosmos operations are unavailable.",
        )
    return cosmos_service


def get_call_options(
    cosmos_service: Annotated[CosmosService, Depends(get_cosmos_service)],
    subscription: str = "",
    auth_method: Annotated[AuthMode | None, Query(alias="authMethod")] = None,
    tenant: str | None = None,
    max_retries: Annotated[int | None, Query(alias="maxRetries", ge=0)] = None,
    max_delay_seconds: Annotated[
        float | None, Query(alias="maxDelaySeconds", ge=0)
    ] = None,
) -> CallOptions:
    """Bind caller options, filling gaps from the service settings."""
    settings = cosmos_service.settings

    retry_policy = None
    if max_retries is not None or max_delay_seconds is not None:
        retry_policy = RetryPolicyOptions()
        if max_retries is not None:
            retry_policy.max_retries = max_retries
        if max_delay_seconds is not None:
            retry_policy.max_delay_seconds = max_delay_seconds

    return CallOptions(
        subscription=subscription or settings.azure_subscription_id,
        auth_mode=auth_method or settings.default_auth_mode,
        tenant=tenant or settings.azure_tenant_id,
        retry_policy=retry_policy,
    )


def to_http_exception(exc: CosmosGatewayError) -> HTTPException:
    """Map a gateway error onto an HTTPException with the service status."""
    status_code = exc.status_code
    if status_code is None or not 400 <= status_code < 600:
        status_code = 500
    return HTTPException(status_code=status_code, detail=exc.message)


CosmosServiceDep = Annotated[CosmosService, Depends(get_cosmos_service)]
CallOptionsDep = Annotated[CallOptions, Depends(get_call_options)]
