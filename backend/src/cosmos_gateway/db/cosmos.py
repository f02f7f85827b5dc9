"""CosmosService wires the gateways together and owns their lifecycle.

One CosmosService is created per process. It owns the client cache and the
ambient credentials, and close() releases both at shutdown.
"""

import logging
from datetime import timedelta

from cosmos_gateway.config import Settings
from cosmos_gateway.db.accounts import AccountResolver
from cosmos_gateway.db.auth import AuthNegotiator
from cosmos_gateway.db.cache import CacheService, InMemoryCacheService
from cosmos_gateway.db.client_cache import ClientCache
from cosmos_gateway.db.containers import (
    ContainerGateway,
    DataPlaneContainerReader,
    ManagementContainerAdministrator,
)
from cosmos_gateway.db.databases import DatabaseGateway
from cosmos_gateway.db.items import ItemGateway
from cosmos_gateway.db.subscriptions import CredentialProvider, SubscriptionService

logger = logging.getLogger(__name__)


class CosmosService:
    """Composition root for the Cosmos DB gateways.

    Usage:
        service = CosmosService(get_settings())
        result = await service.items.get_item(...)
        # ... use service.containers, service.databases ...
        await service.close()
    """

    def __init__(self, settings: Settings, cache: CacheService | None = None) -> None:
        ttl = timedelta(minutes=settings.cache_ttl_minutes)
        self.settings = settings
        self.cache = cache if cache is not None else InMemoryCacheService()

        self.credentials = CredentialProvider(default_tenant=settings.azure_tenant_id)
        self.subscriptions = SubscriptionService(self.credentials)
        self.accounts = AccountResolver(self.subscriptions)
        self.negotiator = AuthNegotiator(
            self.accounts,
            self.credentials,
            user_agent=settings.cosmos_user_agent,
            endpoint_template=settings.cosmos_endpoint_template,
        )
        self.clients = ClientCache(self.negotiator, self.cache, ttl=ttl)

        self.items = ItemGateway(self.clients, self.cache, ttl=ttl)
        self.containers = ContainerGateway(
            DataPlaneContainerReader(self.clients, self.cache, ttl=ttl),
            ManagementContainerAdministrator(self.accounts, self.subscriptions),
        )
        self.databases = DatabaseGateway(self.accounts, self.clients, self.cache, ttl=ttl)
        self._closed = False

        logger.info(
            "Cosmos service initialized: cache_ttl=%s, default_auth=%s",
            ttl,
            settings.default_auth_mode,
        )

    async def close(self) -> None:
        """Dispose every cached client, then close the credentials."""
        if self._closed:
            return
        self._closed = True
        await self.clients.close()
        await self.credentials.close()
        logger.info("Cosmos service closed")
