"""
Application Configuration Model.

Aggregates every configuration section into one object.
"""

from typing import Any

from pydantic import Field

from .api import ApiConfig
from .base import BaseConfig
from .sync import CacheConfig, LoggingConfig, RefreshConfig, SyncSettings


class AppConfig(BaseConfig):
    """
    Main application configuration.

    Example:
        >>> config = AppConfig.from_dict({
        ...     "api": {"user_id": "42", "access_token": "${PORTFOLIO_ACCESS_TOKEN}"},
        ...     "refresh": {"interval": 120},
        ... })
        >>> config.api.max_retries
        2
    """

    api: ApiConfig = Field(
        default_factory=ApiConfig,
        description="Remote API configuration",
    )
    cache: CacheConfig = Field(
        default_factory=CacheConfig,
        description="Cache configuration",
    )
    refresh: RefreshConfig = Field(
        default_factory=RefreshConfig,
        description="Balance refresh configuration",
    )
    sync: SyncSettings = Field(
        default_factory=SyncSettings,
        description="Open-orders sync configuration",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        return cls(**data)
