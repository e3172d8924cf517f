"""
Configuration error hierarchy for eventmesh.

Purpose
-------
Domain-specific exceptions for configuration loading and validation.

Exception Hierarchy
-------------------
ConfigError (base)
└── ConfigValidationError (type/bounds/format failures)
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     Config.validate()
    ... except ConfigError as e:
    ...     logger.error(f"Config problem: {e}")
    """
    pass


class ConfigValidationError(ConfigError):
    """
    Raised when configuration validation fails in production.

    This exception is raised when:
    - DATABASE_URL uses an unsupported driver scheme

    Outside production the URL is discarded with a warning and the
    in-memory event store is used instead.
    """

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"{key}: {message}")


__all__ = [
    "ConfigError",
    "ConfigValidationError",
]
