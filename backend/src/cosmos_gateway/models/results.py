"""Pydantic models shared by the Cosmos DB gateways.

Result envelopes use camelCase field names because they are serialized
verbatim to the agent and HTTP callers. Internal descriptors (Account,
RetryPolicyOptions) stay snake_case.
"""

from enum import StrEnum

from pydantic import BaseModel, Field


class AuthMode(StrEnum):
    """How a data-plane client authenticates against an account."""

    CREDENTIAL = "credential"
    KEY = "key"


class RetryPolicyOptions(BaseModel):
    """Transport retry bounds for rate-limited (429) requests."""

    max_retries: int = Field(default=9, ge=0)
    max_delay_seconds: float = Field(default=30.0, ge=0)


class Account(BaseModel):
    """Read-only control-plane snapshot of a Cosmos DB account.

    Resolved on demand and never persisted. Key material is not part of the
    snapshot -- it is fetched separately, only when key auth is required.
    """

    name: str
    id: str
    subscription_id: str
    resource_group: str
    location: str
    document_endpoint: str | None = None


class ItemOperationResult(BaseModel):
    """Success envelope for item create, upsert and delete."""

    success: bool = True
    id: str
    partitionKey: str  # noqa: N815


class ContainerOperationResult(BaseModel):
    """Success envelope for container creation."""

    success: bool = True
    container: str
    partitionKeyPath: str  # noqa: N815


class ContainerDetails(BaseModel):
    """Normalized container metadata assembled from the container definition.

    throughput is None for serverless accounts and for containers that
    inherit shared throughput from their database.
    """

    id: str
    partitionKeyPath: str | None = None  # noqa: N815
    partitionKeyPaths: list[str] = Field(default_factory=list)  # noqa: N815
    defaultTimeToLive: int | None = None  # noqa: N815
    indexingPolicy: dict | None = None  # noqa: N815
    uniqueKeyPolicy: dict | None = None  # noqa: N815
    etag: str | None = None
    lastModifiedTimestamp: int | None = None  # noqa: N815
    throughput: int | None = None
