"""Bearer API key check for the Cosmos HTTP API.

Every /api/cosmos request must carry Authorization: Bearer <key>. The key is
either passed to the middleware directly or read from app.state.api_key,
which the lifespan fills from Key Vault. Rejected requests are logged with
an AUTH_FAILED marker.
"""

import logging
import secrets
from datetime import UTC, datetime

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

logger = logging.getLogger("cosmos_gateway.auth")

PUBLIC_PATHS: frozenset[str] = frozenset({"/health", "/docs", "/openapi.json"})
BEARER_PREFIX = "Bearer "


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Rejects non-public requests whose bearer token is not the API key.

    When no key is configured at all, every non-public request is rejected.
    """

    def __init__(self, app: ASGIApp, api_key: str | None = None) -> None:
        super().__init__(app)
        self._api_key = api_key

    def _expected_key(self, request: Request) -> str | None:
        if self._api_key is not None:
            return self._api_key
        return getattr(request.app.state, "api_key", None)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        header = request.headers.get("authorization", "")
        if not header.startswith(BEARER_PREFIX):
            return self._reject(request, "missing or malformed Authorization header")

        expected = self._expected_key(request)
        provided = header[len(BEARER_PREFIX):]
        if expected is None or not secrets.compare_digest(
            provided.encode(), expected.encode()
        ):
            return self._reject(request, "invalid API key")

        return await call_next(request)

    def _reject(self, request: Request, reason: str) -> JSONResponse:
        client_ip = request.client.host if request.client else "unknown"
        logger.warning(
            "AUTH_FAILED ip=%s timestamp=%s path=%s reason=%s",
            client_ip,
            datetime.now(UTC).isoformat(),
            request.url.path,
            reason,
        )
        return JSONResponse(
            status_code=401,
            content={"detail": "Invalid or missing API key"},
        )
