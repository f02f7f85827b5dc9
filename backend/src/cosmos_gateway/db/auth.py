"""Data-plane client construction with credential-to-key fallback.

AuthNegotiator is stateless: it builds and validates a CosmosClient and hands
it to the caller (ClientCache), which owns the handle from then on.

Negotiation runs as a two-state machine. TRY_PRIMARY uses the requested mode;
an authorization failure (401/403) under credential auth moves to
TRY_FALLBACK, which uses the account key. Any failure in TRY_FALLBACK, or any
non-authorization failure, is terminal. There is no path back from key auth
to credential auth.
"""

import logging
from collections.abc import Callable
from enum import Enum, auto

from azure.core.exceptions import ClientAuthenticationError
from azure.cosmos.aio import CosmosClient
from azure.cosmos.exceptions import CosmosHttpResponseError

from cosmos_gateway.db.accounts import AccountResolver
from cosmos_gateway.db.subscriptions import CredentialProvider, retry_kwargs
from cosmos_gateway.errors import AuthFailureError, error_for_status, require
from cosmos_gateway.models.results import AuthMode, RetryPolicyOptions

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT_TEMPLATE = "https://{account}.documents.azure.com:443/"


class _NegotiationState(Enum):
    TRY_PRIMARY = auto()
    TRY_FALLBACK = auto()
    FAILED = auto()


class AuthNegotiator:
    """Produces a validated data-plane client for an account.

    Usage:
        negotiator = AuthNegotiator(accounts, credentials, user_agent="my-app/1.0")
        client = await negotiator.create_client("myaccount", subscription_id)
    """

    def __init__(
        self,
        accounts: AccountResolver,
        credentials: CredentialProvider,
        user_agent: str,
        endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE,
        client_factory: Callable[..., CosmosClient] = CosmosClient,
    ) -> None:
        self._accounts = accounts
        self._credentials = credentials
        self._user_agent = user_agent
        self._endpoint_template = endpoint_template
        self._client_factory = client_factory

    def endpoint_for(self, account_name: str) -> str:
        return self._endpoint_template.format(account=account_name)

    async def create_client(
        self,
        account_name: str,
        subscription: str,
        mode: AuthMode = AuthMode.CREDENTIAL,
        tenant: str | None = None,
        retry_policy: RetryPolicyOptions | None = None,
    ) -> CosmosClient:
        """Build a client with the requested mode, falling back to key auth once.

        Raises:
            AuthFailureError: If every permitted mode was rejected.
            CosmosGatewayError: For any non-authorization failure.
        """
        require(account_name=account_name, subscription=subscription)

        state = _NegotiationState.TRY_PRIMARY
        attempt_mode = mode
        last_error: AuthFailureError | None = None
        while state is not _NegotiationState.FAILED:
            try:
                return await self._connect(
                    account_name, subscription, attempt_mode, tenant, retry_policy
                )
            except AuthFailureError as exc:
                last_error = exc
                can_fall_back = (
                    state is _NegotiationState.TRY_PRIMARY
                    and attempt_mode == AuthMode.CREDENTIAL
                    and exc.is_authorization_status
                )
                if can_fall_back:
                    logger.warning(
                        "Credential auth rejected for account %s (status %s), "
                        "falling back to key auth",
                        account_name,
                        exc.status_code,
                    )
                    state = _NegotiationState.TRY_FALLBACK
                    attempt_mode = AuthMode.KEY
                else:
                    state = _NegotiationState.FAILED

        msg = (
            f"Failed to create Cosmos client for account '{account_name}' "
            f"with any authentication method: {last_error.message}"
        )
        raise AuthFailureError(
            msg, status_code=last_error.status_code, error_code=last_error.error_code
        ) from last_error

    async def _connect(
        self,
        account_name: str,
        subscription: str,
        mode: AuthMode,
        tenant: str | None,
        retry_policy: RetryPolicyOptions | None,
    ) -> CosmosClient:
        if mode == AuthMode.KEY:
            account = await self._accounts.resolve(
                subscription, account_name, tenant, retry_policy
            )
            credential = await self._accounts.get_primary_key(
                account, tenant, retry_policy
            )
        else:
            credential = self._credentials.get_credential(tenant)

        client = self._client_factory(
            self.endpoint_for(account_name),
            credential=credential,
            user_agent=self._user_agent,
            **retry_kwargs(retry_policy),
        )
        await self._validate(client, account_name)
        logger.info("Created Cosmos client for account %s (auth=%s)", account_name, mode)
        return client

    async def _validate(self, client: CosmosClient, account_name: str) -> None:
        """Read the account metadata once; close the client if that fails."""
        try:
            # Entering the async client reads the database account.
            await client.__aenter__()
        except BaseException as exc:
            await client.close()
            if isinstance(exc, CosmosHttpResponseError):
                raise error_for_status(
                    exc.status_code,
                    f"Failed to validate Cosmos client for '{account_name}': "
                    f"{exc.message}",
                ) from exc
            if isinstance(exc, ClientAuthenticationError):
                raise AuthFailureError(
                    f"Credential could not authenticate to '{account_name}': "
                    f"{exc.message}",
                    status_code=exc.status_code,
                ) from exc
            raise
