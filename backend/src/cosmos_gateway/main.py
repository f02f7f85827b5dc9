"""FastAPI app exposing the Cosmos DB gateway with API key auth and OTel tracing."""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Settings and the OTel exporter both read the environment
load_dotenv()

from agent_framework.observability import configure_otel_providers  # noqa: E402
from azure.core.exceptions import AzureError  # noqa: E402
from azure.identity.aio import DefaultAzureCredential  # noqa: E402
from azure.keyvault.secrets.aio import SecretClient  # noqa: E402
from fastapi import FastAPI  # noqa: E402

from cosmos_gateway.api.containers import router as containers_router  # noqa: E402
from cosmos_gateway.api.health import router as health_router  # noqa: E402
from cosmos_gateway.api.items import router as items_router  # noqa: E402
from cosmos_gateway.auth import APIKeyMiddleware  # noqa: E402
from cosmos_gateway.config import VERSION, Settings, get_settings  # noqa: E402
from cosmos_gateway.db.cosmos import CosmosService  # noqa: E402

logger = logging.getLogger(__name__)

if get_settings().enable_instrumentation:
    configure_otel_providers()


async def _fetch_api_key(settings: Settings) -> str | None:
    """Read the API key secret from Key Vault, or None when unavailable."""
    if not settings.key_vault_url:
        logger.warning("KEY_VAULT_URL is not set; API key auth will reject requests")
        return None

    credential = DefaultAzureCredential()
    try:
        async with SecretClient(
            vault_url=settings.key_vault_url, credential=credential
        ) as kv_client:
            secret = await kv_client.get_secret(settings.api_key_secret_name)
        logger.info("API key fetched from Key Vault")
        return secret.value
    except AzureError as exc:
        logger.warning(
            "Could not fetch API key from Key Vault (%s). "
            "API key auth will reject requests until Key Vault is configured.",
            exc,
        )
        return None
    finally:
        await credential.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the Cosmos service at startup and dispose every client at shutdown."""
    settings = get_settings()

    app.state.api_key = await _fetch_api_key(settings)

    cosmos_service = CosmosService(settings)
    app.state.cosmos_service = cosmos_service

    yield

    await cosmos_service.close()


app = FastAPI(title="Cosmos DB Gateway", version=VERSION, lifespan=lifespan)

# Reads app.state.api_key lazily, after the lifespan has set it
app.add_middleware(APIKeyMiddleware)

app.include_router(health_router)
app.include_router(items_router)
app.include_router(containers_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8003)
