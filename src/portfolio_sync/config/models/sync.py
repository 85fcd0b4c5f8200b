"""
Cache, Refresh and Sync Configuration Models.
"""

from typing import Optional

from pydantic import Field, field_validator

from portfolio_sync.cache.keys import CacheTTL

from .base import BaseConfig


class CacheConfig(BaseConfig):
    """In-memory cache configuration."""

    enabled: bool = Field(
        default=True,
        description="Global cache switch",
    )
    ttl: dict[str, float] = Field(
        default_factory=dict,
        description="TTL overrides in seconds per resource kind",
    )

    @field_validator("ttl")
    @classmethod
    def validate_ttl(cls, v: dict[str, float]) -> dict[str, float]:
        for kind, seconds in v.items():
            if seconds < 0:
                raise ValueError(f"TTL for '{kind}' must not be negative")
        return v

    def ttl_table(self) -> CacheTTL:
        return CacheTTL.from_dict(self.ttl)


class RefreshConfig(BaseConfig):
    """Balance refresh coordinator configuration."""

    interval: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between silent background refreshes",
    )
    emit_delay: float = Field(
        default=0.1,
        ge=0,
        description="Delay before broadcasting a balances-updated event",
    )


class SyncSettings(BaseConfig):
    """Open-orders background synchronizer configuration."""

    enabled: bool = Field(
        default=True,
        description="Run automatic open-orders sync after balance changes",
    )
    settle_delay: float = Field(
        default=0.5,
        ge=0,
        description="Wait after a snapshot change before syncing",
    )
    debounce_window: float = Field(
        default=2.0,
        ge=0,
        description="Minimum seconds between the starts of two automatic syncs",
    )


class LoggingConfig(BaseConfig):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Log level",
    )
    file: Optional[str] = Field(
        default=None,
        description="Optional rotating log file path",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Normalize level, falling back to INFO."""
        v = v.upper().strip()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            v = "INFO"
        return v

    @field_validator("file")
    @classmethod
    def empty_file_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None
