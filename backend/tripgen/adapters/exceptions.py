"""External service exceptions."""


class AdapterError(Exception):
    """Base exception for external service adapter errors."""
    pass


class AdapterUnavailableError(AdapterError):
    """Raised when unable to connect to an external service."""
    pass


class AdapterTimeoutError(AdapterError):
    """Raised when an external service request times out."""
    pass


class AdapterResponseError(AdapterError):
    """Raised when an external service returns an error or unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
