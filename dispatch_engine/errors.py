"""Error taxonomy for the dispatch engine.

Only ``ValidationError`` is ever raised across the dispatch boundary. The other
errors are raised inside adapters and converted into ``SendResult.error`` so
that they can drive the fallback decision instead of unwinding the caller.
"""


class DispatchError(Exception):
    """Base class for dispatch errors."""

    error_type = "DispatchError"

    def __str__(self) -> str:
        return self.args[0] if self.args else self.error_type


class ValidationError(DispatchError):
    """Malformed or missing request fields. Rejected before any send."""

    error_type = "ValidationError"


class PhoneFormatError(DispatchError):
    """Destination fails a country-specific format check. No network call is made."""

    error_type = "PhoneFormatError"


class GatewayAuthError(DispatchError):
    """The provider rejected our credentials (HTTP 401/403, or 404 on BulkGate v2)."""

    error_type = "GatewayAuthError"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GatewayRejected(DispatchError):
    """The provider answered but did not accept the message."""

    error_type = "GatewayRejected"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(DispatchError):
    """Timeout or connection failure talking to the provider."""

    error_type = "NetworkError"


class UnknownCountryWarning(UserWarning):
    """The destination country could not be detected; the default provider is used."""
