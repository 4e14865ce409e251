"""Application error taxonomy.

Every error raised by a service derives from :class:`TrocasError`. The API layer
turns them into ``{"success": false, "error": ...}`` responses, so services never
build HTTP responses themselves.
"""

from typing import Any


class TrocasError(Exception):
    """Base application error."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code}


# === Not found ===


class NotFoundError(TrocasError):
    status_code = 404
    code = "not_found"


class StoreNotFound(NotFoundError):
    code = "store_not_found"

    def __init__(self, message: str = "Loja não encontrada", **details: Any):
        super().__init__(message, **details)


class OrderNotFound(NotFoundError):
    code = "order_not_found"

    def __init__(
        self,
        message: str = "Pedido não encontrado. Verifique o número do pedido e e-mail.",
        **details: Any,
    ):
        super().__init__(message, **details)


class ReturnRequestNotFound(NotFoundError):
    code = "return_request_not_found"

    def __init__(self, message: str = "Solicitação não encontrada", **details: Any):
        super().__init__(message, **details)


# === Validation ===


class ValidationError(TrocasError):
    status_code = 400
    code = "validation_error"


class MissingAddress(ValidationError):
    code = "missing_address"


class InvalidOAuthState(ValidationError):
    code = "invalid_oauth_state"

    def __init__(self, message: str = "Estado inválido", **details: Any):
        super().__init__(message, **details)


# === Upstream ===


class UpstreamError(TrocasError):
    """Non-2xx or malformed response from an external API."""

    status_code = 502
    code = "upstream_error"

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int | None = None,
        raw_response: str | None = None,
        **details: Any,
    ):
        self.upstream_status = upstream_status
        self.raw_response = raw_response
        super().__init__(message, **details)


class UpstreamAuthError(UpstreamError):
    code = "upstream_auth_error"


class UpstreamUnavailable(UpstreamError):
    code = "upstream_unavailable"


class CarrierError(UpstreamError):
    """Carrier refused a call; the merchant sees the carrier's own reason."""

    code = "carrier_error"
    MAX_DETAILS_LENGTH = 500

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.raw_response:
            data["details"] = self.raw_response[: self.MAX_DETAILS_LENGTH]
        return data


# === Conflict ===


class ConflictError(TrocasError):
    status_code = 409
    code = "conflict"


class InvalidTransition(ConflictError):
    code = "invalid_transition"


# === Access ===


class AuthenticationError(TrocasError):
    status_code = 401
    code = "unauthenticated"


class PermissionDenied(TrocasError):
    status_code = 403
    code = "forbidden"


class ConfigurationError(TrocasError):
    status_code = 500
    code = "configuration_error"
