"""
Retry Module.

Bounded retry for network calls.
"""

from .retry import (
    AttemptRecord,
    RetryConfig,
    RetryStrategy,
    RetryResult,
    retry_async,
)

__all__ = [
    "AttemptRecord",
    "RetryConfig",
    "RetryStrategy",
    "RetryResult",
    "retry_async",
]
