"""Control-plane lookup of Cosmos DB accounts within a subscription."""

import logging

from azure.core.exceptions import HttpResponseError

from cosmos_gateway.db.subscriptions import SubscriptionService
from cosmos_gateway.errors import NotFoundError, error_for_status, require
from cosmos_gateway.models.results import Account, RetryPolicyOptions

logger = logging.getLogger(__name__)


def _resource_group_from_id(resource_id: str) -> str:
    """Extract the resource group segment from an ARM resource id."""
    segments = resource_id.strip("/").split("/")
    lowered = [segment.lower() for segment in segments]
    try:
        return segments[lowered.index("resourcegroups") + 1]
    except (ValueError, IndexError):
        return ""


class AccountResolver:
    """Resolves account names to control-plane descriptors by linear scan."""

    def __init__(self, subscriptions: SubscriptionService) -> None:
        self._subscriptions = subscriptions

    async def list_accounts(
        self,
        subscription: str,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> list[str]:
        """Return the names of every account visible in the subscription."""
        require(subscription=subscription)
        handle = await self._subscriptions.get_subscription(
            subscription, tenant, retry_policy
        )

        names: list[str] = []
        try:
            async with handle.management_client(retry_policy) as mgmt:
                async for account in mgmt.database_accounts.list():
                    if account.name:
                        names.append(account.name)
        except HttpResponseError as exc:
            raise error_for_status(
                exc.status_code,
                f"Error retrieving Cosmos DB accounts: {exc.message}",
            ) from exc

        return names

    async def resolve(
        self,
        subscription: str,
        account_name: str,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> Account:
        """Return the account whose name matches exactly (case-sensitive).

        Raises:
            NotFoundError: If no account matches after full enumeration.
        """
        require(subscription=subscription, account_name=account_name)
        handle = await self._subscriptions.get_subscription(
            subscription, tenant, retry_policy
        )

        try:
            async with handle.management_client(retry_policy) as mgmt:
                async for account in mgmt.database_accounts.list():
                    if account.name == account_name:
                        return Account(
                            name=account.name,
                            id=account.id,
                            subscription_id=handle.subscription_id,
                            resource_group=_resource_group_from_id(account.id),
                            location=account.location,
                            document_endpoint=account.document_endpoint,
                        )
        except HttpResponseError as exc:
            raise error_for_status(
                exc.status_code,
                f"Error resolving Cosmos DB account '{account_name}': {exc.message}",
            ) from exc

        msg = (
            f"Cosmos DB account '{account_name}' not found "
            f"in subscription '{subscription}'"
        )
        raise NotFoundError(msg)

    async def get_primary_key(
        self,
        account: Account,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> str:
        """Fetch the account's primary master key from the control plane."""
        handle = await self._subscriptions.get_subscription(
            account.subscription_id, tenant, retry_policy
        )

        try:
            async with handle.management_client(retry_policy) as mgmt:
                keys = await mgmt.database_accounts.list_keys(
                    account.resource_group, account.name
                )
        except HttpResponseError as exc:
            raise error_for_status(
                exc.status_code,
                f"Error fetching keys for Cosmos DB account '{account.name}': "
                f"{exc.message}",
            ) from exc

        logger.info("Fetched primary key for account %s", account.name)
        return keys.primary_master_key
