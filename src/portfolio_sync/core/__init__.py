"""
Core module for portfolio-sync.

Provides logging utilities, the exception hierarchy, timeout tiers and the
mirrored data models.
"""

from .logger import configure_logging, get_logger, setup_logger
from .exceptions import (
    ApiResponseError,
    ConnectionFailedError,
    HardFailureError,
    MalformedResponseError,
    NetworkError,
    PortfolioSyncError,
    RequestTimeoutError,
    ServerUnavailableError,
    TransientNetworkError,
)
from .timeout import (
    TimeoutConfig,
    with_timeout,
)

__all__ = [
    # Logging
    "setup_logger",
    "get_logger",
    "configure_logging",
    # Exceptions
    "PortfolioSyncError",
    "TransientNetworkError",
    "RequestTimeoutError",
    "ConnectionFailedError",
    "ServerUnavailableError",
    "NetworkError",
    "HardFailureError",
    "ApiResponseError",
    "MalformedResponseError",
    # Timeout utilities
    "TimeoutConfig",
    "with_timeout",
]
