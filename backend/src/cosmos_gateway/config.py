"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings

from cosmos_gateway.models.results import AuthMode

VERSION = "0.1.0"


class Settings(BaseSettings):
    """Application settings loaded from .env file and environment variables."""

    # Cosmos DB data plane
    cosmos_endpoint_template: str = "https://{account}.documents.azure.com:443/"
    cosmos_user_agent: str = f"cosmos-gateway/{VERSION}"
    default_auth_mode: AuthMode = AuthMode.CREDENTIAL

    # Client and name-list caching
    cache_ttl_minutes: int = 15

    # Azure defaults (used when a caller omits them)
    azure_subscription_id: str = ""
    azure_tenant_id: str | None = None

    # Azure Key Vault
    key_vault_url: str = ""
    api_key_secret_name: str = "cosmos-gateway-api-key"

    # OpenTelemetry
    enable_instrumentation: bool = True

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
    }


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
