# Configuration models
from .api import ApiConfig
from .app import AppConfig
from .base import BaseConfig
from .sync import CacheConfig, LoggingConfig, RefreshConfig, SyncSettings

__all__ = [
    "BaseConfig",
    "ApiConfig",
    "CacheConfig",
    "RefreshConfig",
    "SyncSettings",
    "LoggingConfig",
    "AppConfig",
]
