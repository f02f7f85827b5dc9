"""Error taxonomy for the Cosmos DB gateways.

Every failure carries the numeric HTTP status reported by the service (when
there is one) so the HTTP and tool layers can map it without parsing text.
"""

from http import HTTPStatus

AUTH_FAILURE_STATUSES: frozenset[int] = frozenset(
    {HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN}
)


class CosmosGatewayError(Exception):
    """Base class for all gateway failures."""

    default_status: int | None = None

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status
        self.error_code = error_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.status_code} {self.message}"


class ValidationFailureError(CosmosGatewayError):
    """A required parameter was missing or malformed. Raised before any I/O."""

    default_status = HTTPStatus.BAD_REQUEST


class NotFoundError(CosmosGatewayError):
    """The item, container, database or account does not exist."""

    default_status = HTTPStatus.NOT_FOUND


class ConflictError(CosmosGatewayError):
    """A create collided with an existing item or container."""

    default_status = HTTPStatus.CONFLICT


class AuthFailureError(CosmosGatewayError):
    """The service rejected the client's credentials."""

    @property
    def is_authorization_status(self) -> bool:
        return self.status_code in AUTH_FAILURE_STATUSES


class OperationFailedError(CosmosGatewayError):
    """Any other non-success status from the service."""


def error_for_status(
    status_code: int | None,
    message: str,
    error_code: str | None = None,
) -> CosmosGatewayError:
    """Build the gateway error matching a service status code."""
    if status_code == HTTPStatus.NOT_FOUND:
        error_cls: type[CosmosGatewayError] = NotFoundError
    elif status_code == HTTPStatus.CONFLICT:
        error_cls = ConflictError
    elif status_code in AUTH_FAILURE_STATUSES:
        error_cls = AuthFailureError
    else:
        error_cls = OperationFailedError
    return error_cls(message, status_code=status_code, error_code=error_code)


def service_error_code(exc: Exception) -> str | None:
    """Return the service-provided error code of an azure-core error, if any."""
    error = getattr(exc, "error", None)
    return getattr(error, "code", None)


def require(**params: object) -> None:
    """Fail fast when any of the named parameters is None or blank.

    Raises:
        ValidationFailureError: Naming every missing parameter.
    """
    missing = [
        name
        for name, value in params.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        msg = f"Missing required parameters: {', '.join(missing)}"
        raise ValidationFailureError(msg)
