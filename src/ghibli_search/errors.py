"""Exception hierarchy shared by gateways, the HTTP surface and the client."""


class GhibliSearchError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(GhibliSearchError, ValueError):
    """Bad input shape, size or type. Never retried."""


class StorageUnavailableError(GhibliSearchError):
    """Object storage cannot be reached (e.g. the bucket root is missing)."""


class BackendError(GhibliSearchError):
    """A managed backend call failed. Treated as transient by the analysis gateway."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NonRetryableBackendError(BackendError):
    """A backend failure with a known signature that must not be retried."""


class TerminalBackendError(GhibliSearchError):
    """Retry budget exhausted or non-retryable failure hit.

    ``str(exc)`` is the short message shown to users; ``details`` carries the
    technical reason and is only logged or returned as an optional field.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.details = details


class GatewayError(GhibliSearchError):
    """An HTTP call from the client to one of the API routes failed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details
