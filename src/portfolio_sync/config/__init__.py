# Config module - application configuration system
from .exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from .loader import ConfigLoader, load_config
from .models import (
    ApiConfig,
    AppConfig,
    BaseConfig,
    CacheConfig,
    LoggingConfig,
    RefreshConfig,
    SyncSettings,
)

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
    # Loader
    "ConfigLoader",
    "load_config",
    # Models
    "BaseConfig",
    "ApiConfig",
    "CacheConfig",
    "RefreshConfig",
    "SyncSettings",
    "LoggingConfig",
    "AppConfig",
]
