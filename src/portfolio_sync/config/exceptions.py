"""
Configuration Exceptions.
"""


class ConfigError(Exception):
    """Configuration could not be loaded."""


class ConfigFileNotFoundError(ConfigError):
    """The configuration file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No configuration file at {path}")


class ConfigParseError(ConfigError):
    """The configuration file is not a YAML mapping."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot parse {path}: {reason}")


class ConfigValidationError(ConfigError):
    """
    The merged configuration was rejected.

    Attributes:
        errors: One "field.path: message" line per problem
    """

    def __init__(self, errors: list[str]):
        self.errors = errors
        lines = "\n".join(f"  {e}" for e in errors)
        super().__init__(f"Invalid configuration ({len(errors)} problem(s)):\n{lines}")
