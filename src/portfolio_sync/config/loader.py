"""
Configuration Loader.

Reads ``config.yaml``, layers ``config.<env>.yaml`` on top, expands
environment references and validates the result into an ``AppConfig``.
"""

from copy import deepcopy
from pathlib import Path
from typing import Any, Iterator, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .exceptions import (
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from .models import AppConfig
from .models.base import expand_env

PathLike = Union[str, Path]


class ConfigLoader:
    """
    YAML configuration loader.

    Example:
        >>> config = ConfigLoader().load("config/config.yaml", env="production")
        >>> config.api.base_url
        'https://api.example.com/api/v1'
    """

    def __init__(self, env_file: Optional[PathLike] = None):
        """
        Args:
            env_file: Explicit .env file. Without one, the first .env found
                beside the config file, one directory up or in the working
                directory is used.
        """
        self._env_file = Path(env_file) if env_file else None
        self._env_loaded = False

    def load(self, path: PathLike, env: Optional[str] = None) -> AppConfig:
        """
        Build an AppConfig from ``path`` and its optional ``env`` overlay.

        Raises:
            ConfigFileNotFoundError: ``path`` does not exist
            ConfigParseError: A file is not valid YAML or not a mapping
            ConfigValidationError: The merged values do not validate
        """
        path = Path(path)
        self._ensure_env_loaded(path.parent)

        raw = self.load_yaml(path)
        overlay = self._overlay_path(path, env)
        if overlay is not None:
            raw = self.merge_configs(raw, self.load_yaml(overlay))

        try:
            return AppConfig(**self.substitute_env_vars(raw))
        except ValidationError as e:
            raise ConfigValidationError([_describe(err) for err in e.errors()]) from e

    @staticmethod
    def _overlay_path(path: Path, env: Optional[str]) -> Optional[Path]:
        if not env:
            return None
        candidate = path.with_name(f"{path.stem}.{env}{path.suffix}")
        return candidate if candidate.exists() else None

    def load_yaml(self, path: PathLike) -> dict[str, Any]:
        """Parse one YAML file. An empty file yields an empty mapping."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigFileNotFoundError(str(path)) from None

        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigParseError(str(path), str(e)) from e

        if document is None:
            return {}
        if not isinstance(document, dict):
            raise ConfigParseError(
                str(path), f"expected a mapping at top level, got {type(document).__name__}"
            )
        return document

    def merge_configs(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """
        Return ``base`` with ``override`` applied. Nested mappings merge key
        by key; neither input is modified.

        Example:
            >>> loader.merge_configs({"api": {"max_retries": 2, "user_id": "1"}},
            ...                      {"api": {"max_retries": 0}})
            {'api': {'max_retries': 0, 'user_id': '1'}}
        """
        merged = deepcopy(base)
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = self.merge_configs(current, value)
            else:
                merged[key] = deepcopy(value)
        return merged

    def substitute_env_vars(self, data: Any) -> Any:
        """Expand references; a value that is exactly one reference gets a typed result."""
        return expand_env(data, typed=True)

    def _ensure_env_loaded(self, config_dir: Path) -> None:
        if self._env_loaded:
            return
        for candidate in self._env_candidates(config_dir):
            if candidate.is_file():
                load_dotenv(candidate)
                self._env_loaded = True
                return

    def _env_candidates(self, config_dir: Path) -> Iterator[Path]:
        if self._env_file:
            yield self._env_file
        yield config_dir / ".env"
        yield config_dir.parent / ".env"
        yield Path.cwd() / ".env"


def _describe(error: Any) -> str:
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {error['msg']}"


def load_config(
    path: PathLike,
    env: Optional[str] = None,
    env_file: Optional[PathLike] = None,
) -> AppConfig:
    """One-shot load with a fresh ConfigLoader."""
    return ConfigLoader(env_file=env_file).load(path, env=env)
