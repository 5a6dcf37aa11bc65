"""
Error types raised by the discovery components.
"""
from typing import Optional


class DiscoveryError(Exception):
    """Base exception for pod discovery errors."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        """
        Initialize the discovery error.

        Args:
            message: Error message
            cause: Underlying exception, if any
        """
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(DiscoveryError):
    """Raised at initialization when discovery settings are invalid."""


class FetchError(DiscoveryError):
    """Raised when the pod inventory could not be fetched after all attempts."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        attempts: int = 0,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause=cause)
        self.url = url
        self.attempts = attempts

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {type(self.cause).__name__}: {self.cause}"
        return self.message


class ParseError(DiscoveryError):
    """Raised when a pod inventory response body is malformed."""


class DispatchError(DiscoveryError):
    """Raised when a discovery request cannot be sent to one endpoint."""

    def __init__(self, message: str, endpoint=None, cause: Optional[BaseException] = None):
        super().__init__(message, cause=cause)
        self.endpoint = endpoint
