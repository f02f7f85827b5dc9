"""Subscription handles and ambient Azure credentials.

A SubscriptionHandle is what the control-plane code needs: a subscription id
plus the credential used to open a CosmosDBManagementClient against it.
"""

import logging
from uuid import UUID

from azure.core.credentials_async import AsyncTokenCredential
from azure.identity.aio import DefaultAzureCredential
from azure.mgmt.cosmosdb.aio import CosmosDBManagementClient

from cosmos_gateway.errors import ValidationFailureError, require
from cosmos_gateway.models.results import RetryPolicyOptions

logger = logging.getLogger(__name__)


def retry_kwargs(retry_policy: RetryPolicyOptions | None) -> dict[str, float]:
    """Translate a retry policy into azure-core client keyword arguments."""
    if retry_policy is None:
        return {}
    return {
        "retry_total": retry_policy.max_retries,
        "retry_backoff_max": retry_policy.max_delay_seconds,
    }


class CredentialProvider:
    """Owns one DefaultAzureCredential per tenant for the process lifetime.

    Usage:
        credentials = CredentialProvider()
        credential = credentials.get_credential(tenant="contoso.onmicrosoft.com")
        # ... use credential ...
        await credentials.close()
    """

    def __init__(self, default_tenant: str | None = None) -> None:
        self._default_tenant = default_tenant
        self._credentials: dict[str, DefaultAzureCredential] = {}

    def get_credential(self, tenant: str | None = None) -> AsyncTokenCredential:
        """Return the shared credential for a tenant, creating it on first use."""
        tenant = tenant or self._default_tenant
        key = tenant or ""
        credential = self._credentials.get(key)
        if credential is None:
            if tenant:
                credential = DefaultAzureCredential(additionally_allowed_tenants=[tenant])
            else:
                credential = DefaultAzureCredential()
            self._credentials[key] = credential
            logger.info("Created ambient credential for tenant=%s", tenant or "default")
        return credential

    async def close(self) -> None:
        """Close every credential created so far."""
        credentials = list(self._credentials.values())
        self._credentials.clear()
        for credential in credentials:
            await credential.close()


class SubscriptionHandle:
    """A resolved subscription bound to the credential that reaches it."""

    def __init__(
        self,
        subscription_id: str,
        credential: AsyncTokenCredential,
        tenant: str | None = None,
    ) -> None:
        self.subscription_id = subscription_id
        self.credential = credential
        self.tenant = tenant

    def management_client(
        self, retry_policy: RetryPolicyOptions | None = None
    ) -> CosmosDBManagementClient:
        """Open a control-plane client. Use it as an async context manager."""
        return CosmosDBManagementClient(
            credential=self.credential,
            subscription_id=self.subscription_id,
            **retry_kwargs(retry_policy),
        )


class SubscriptionService:
    """Turns a caller-supplied subscription id into a SubscriptionHandle."""

    def __init__(self, credentials: CredentialProvider) -> None:
        self._credentials = credentials

    async def get_subscription(
        self,
        subscription: str,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> SubscriptionHandle:
        """Resolve a subscription.

        Only subscription ids are accepted; display names are rejected.

        Raises:
            ValidationFailureError: If the subscription is blank or not a GUID.
        """
        require(subscription=subscription)
        try:
            subscription_id = str(UUID(subscription.strip()))
        except ValueError as exc:
            msg = f"Subscription '{subscription}' is not a subscription id (GUID)"
            raise ValidationFailureError(msg) from exc

        return SubscriptionHandle(
            subscription_id=subscription_id,
            credential=self._credentials.get_credential(tenant),
            tenant=tenant,
        )
