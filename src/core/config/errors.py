"""
Configuration error hierarchy.

Exception Hierarchy
-------------------
ConfigError (base)
├── ConfigValidationError (type or bounds failures for a key)
└── ConfigInitializationError (YAML could not be loaded at startup)

A required key that is missing at read time is reported by services as
``src.core.exceptions.ConfigurationError``.
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     ConfigManager.initialize()
    ... except ConfigError as e:
    ...     logger.error(f"Config operation failed: {e}")
    """


class ConfigValidationError(ConfigError):
    """Raised when a configuration value has the wrong type or is out of range."""


class ConfigInitializationError(ConfigError):
    """
    Raised when ConfigManager initialization fails.

    This is raised when a YAML file exists but cannot be parsed, and
    requires intervention before the application can continue.
    """


__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "ConfigInitializationError",
]
