"""
Base Configuration Model.

Environment references and secret masking shared by every configuration
section.
"""

import os
import re
from typing import Any, Callable, ClassVar, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, model_validator

# ${NAME} or ${NAME:default}
ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")

MASK = "***"

_TRUE_WORDS = frozenset({"true", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "no", "off"})
_INT_TEXT = re.compile(r"[+-]?\d+")
_FLOAT_TEXT = re.compile(r"[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?")


def coerce_scalar(text: str) -> Any:
    """Read env text as bool, int or float when it unambiguously is one."""
    word = text.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    if _INT_TEXT.fullmatch(word):
        return int(word)
    if _FLOAT_TEXT.fullmatch(word):
        return float(word)
    return text


def _resolve(match: re.Match) -> Optional[str]:
    return os.environ.get(match.group("name"), match.group("default"))


def expand_env(value: Any, typed: bool = False, blank_missing: bool = False) -> Any:
    """
    Expand environment references in strings, through nested dicts and lists.

    Args:
        value: Any YAML-shaped value
        typed: A string that is exactly one resolvable reference is passed
            through coerce_scalar instead of staying text
        blank_missing: Unset variables without a default expand to "" instead
            of being left as written
    """
    if isinstance(value, dict):
        return {k: expand_env(v, typed, blank_missing) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(v, typed, blank_missing) for v in value]
    if not isinstance(value, str):
        return value

    whole = ENV_REFERENCE.fullmatch(value)
    if typed and whole:
        resolved = _resolve(whole)
        if resolved is not None:
            return coerce_scalar(resolved)

    def substitute(match: re.Match) -> str:
        resolved = _resolve(match)
        if resolved is None:
            return "" if blank_missing else match.group(0)
        return resolved

    return ENV_REFERENCE.sub(substitute, value)


def _mask(data: dict[str, Any], is_secret: Callable[[str], bool]) -> dict[str, Any]:
    masked = {}
    for key, value in data.items():
        if isinstance(value, dict):
            masked[key] = _mask(value, is_secret)
        elif value and is_secret(key):
            masked[key] = MASK
        else:
            masked[key] = value
    return masked


class BaseConfig(BaseModel):
    """
    Shared behaviour of every configuration section.

    - String values may reference the environment as ``${VAR}`` or
      ``${VAR:default}``; an unset variable without a default becomes ""
    - Fields whose name contains token, password or secret print as ``***``
    - Instances are immutable

    Example:
        >>> class ServerConfig(BaseConfig):
        ...     access_token: str = ""
        ...
        >>> ServerConfig(access_token="${API_TOKEN:dev}")
        ServerConfig(access_token='***')
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        validate_default=True,
        str_strip_whitespace=True,
    )

    secret_markers: ClassVar[FrozenSet[str]] = frozenset({"token", "password", "secret"})

    @model_validator(mode="before")
    @classmethod
    def expand_environment(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return expand_env(data, blank_missing=True)
        return data

    @classmethod
    def is_secret(cls, field_name: str) -> bool:
        name = field_name.lower()
        return any(marker in name for marker in cls.secret_markers)

    def masked_dict(self) -> dict[str, Any]:
        """model_dump() with secret values replaced by ``***``."""
        return _mask(self.model_dump(), self.is_secret)

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v!r}" for k, v in self.masked_dict().items())
        return f"{type(self).__name__}({body})"

    __str__ = __repr__
