"""Health check endpoint with Cosmos service status."""

from fastapi import APIRouter, Request

from cosmos_gateway.db.client_cache import CACHE_GROUP, CLIENT_KEY_PREFIX

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Return service health status and the number of live cached clients."""
    cosmos_service = getattr(request.app.state, "cosmos_service", None)
    if cosmos_service is None:
        return {"status": "degraded", "cosmos": "not_configured", "cachedClients": 0}

    keys = await cosmos_service.cache.get_group_keys(CACHE_GROUP)
    cached_clients = sum(1 for key in keys if key.startswith(CLIENT_KEY_PREFIX))

    return {"status": "ok", "cosmos": "ready", "cachedClients": cached_clients}
