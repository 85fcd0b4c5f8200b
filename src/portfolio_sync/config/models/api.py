"""
API Configuration Model.

Where the server lives, who the user is, and how hard to try.
"""

from typing import Any, Optional

from pydantic import Field, field_validator

from portfolio_sync.core.timeout import TimeoutConfig

from .base import BaseConfig


class ApiConfig(BaseConfig):
    """
    Remote API connection configuration.

    Example:
        >>> config = ApiConfig(
        ...     base_url="${PORTFOLIO_API_URL:http://localhost:5000/api/v1}",
        ...     user_id="${PORTFOLIO_USER_ID}",
        ...     access_token="${PORTFOLIO_ACCESS_TOKEN}",
        ... )
    """

    base_url: str = Field(
        default="http://localhost:5000/api/v1",
        description="API base URL, including the version prefix",
    )
    user_id: str = Field(
        default="",
        description="User whose state is mirrored",
    )
    access_token: Optional[str] = Field(
        default=None,
        description="Static bearer token (leave empty to run unauthenticated)",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries after the first attempt for read requests",
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0,
        description="Fixed delay between attempts, in seconds",
    )
    timeouts: dict[str, float] = Field(
        default_factory=dict,
        description="Overrides for timeout tiers (critical, summary, standard, fast, mutation)",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require http(s) and drop the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got '{v}'")
        return v.rstrip("/")

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, v: Any) -> str:
        """Numeric ids from env substitution are kept as strings."""
        return "" if v is None else str(v)

    @field_validator("access_token", mode="before")
    @classmethod
    def empty_token_is_none(cls, v: Any) -> Optional[str]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return str(v)

    @field_validator("timeouts")
    @classmethod
    def validate_timeouts(cls, v: dict[str, float]) -> dict[str, float]:
        for tier, seconds in v.items():
            if seconds <= 0:
                raise ValueError(f"Timeout for '{tier}' must be positive")
        return v

    @property
    def has_credentials(self) -> bool:
        return bool(self.access_token)

    def timeout_config(self) -> TimeoutConfig:
        """Build timeout tiers with configured overrides applied."""
        return TimeoutConfig.from_dict(self.timeouts)
