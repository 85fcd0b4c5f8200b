"""
Custom exceptions for portfolio-sync.

Hierarchy:
    PortfolioSyncError (base)
    ├── TransientNetworkError      (retried by the request executor)
    │   ├── RequestTimeoutError
    │   ├── ConnectionFailedError
    │   └── ServerUnavailableError
    ├── NetworkError               (all attempts exhausted)
    └── HardFailureError           (never retried)
        ├── ApiResponseError
        └── MalformedResponseError

Server-side degradations (auth, unsupported capability, exchange faults) are
not exceptions: they travel as a ``Degradation`` on the decoded response.
"""

from typing import Any, Optional


class PortfolioSyncError(Exception):
    """
    Root of every error raised by portfolio-sync.

    Attributes:
        message: Human-readable description
        code: Short machine-readable tag such as "timeout" or an HTTP status
        details: Extra context for logs
    """

    default_message = "Portfolio sync failed"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.code = code
        self.details = dict(details or {})
        super().__init__(self.message)

    def __str__(self) -> str:
        text = f"{self.message} [{self.code}]" if self.code else self.message
        return f"{text} {self.details}" if self.details else text

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code!r}, details={self.details!r})"


# Transient network errors
class TransientNetworkError(PortfolioSyncError):
    """Failure that may succeed when the same request is attempted again."""

    default_message = "Transient network error"


class RequestTimeoutError(TransientNetworkError):
    """A single attempt did not complete within its timeout budget."""

    default_message = "Request timed out"

    def __init__(self, operation: str, timeout: float, message: Optional[str] = None):
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            message or f"Operation '{operation}' timed out after {timeout}s",
            code="timeout",
        )


class ConnectionFailedError(TransientNetworkError):
    """Connection to the API server failed."""

    default_message = "Failed to connect to API server"


class ServerUnavailableError(TransientNetworkError):
    """Server answered with 5xx or 429."""

    default_message = "Server unavailable"

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        super().__init__(message or f"HTTP {status}", code=str(status))


class NetworkError(PortfolioSyncError):
    """Every attempt of a request failed with a transient error."""

    default_message = "Network request failed"

    def __init__(self, attempts: int, last_cause: BaseException | None = None):
        self.attempts = attempts
        self.last_cause = last_cause
        cause = f": {last_cause}" if last_cause else ""
        super().__init__(f"Request failed after {attempts} attempt(s){cause}")


# Hard failures
class HardFailureError(PortfolioSyncError):
    """Failure that retrying cannot fix."""

    default_message = "Request failed"


class ApiResponseError(HardFailureError):
    """Server rejected the request with a 4xx status."""

    default_message = "API error"

    def __init__(self, status: int, body: Any = None, message: Optional[str] = None):
        self.status = status
        self.body = body
        super().__init__(message or f"API error: {status}", code=str(status))


class MalformedResponseError(HardFailureError):
    """Response body could not be decoded into the expected shape."""

    default_message = "Malformed response"
