"""
Static configuration management for the progression core (2025).

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. This module
handles non-dynamic configuration that is set at application startup.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings on startup
- Create required directories (logs, data)
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Game balance values (handled by ConfigManager from YAML)
- Runtime configuration changes (except safe reload)
- Secrets management (use environment variables)

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- Auto-loads on module import via Config.validate()
- Directory paths relative to project root for portability

Configuration Categories
------------------------
1. Database: connection URL and pool settings
2. Environment: environment type, debug mode, logging
3. Directories: logs, data, YAML config

Dependencies
------------
- python-dotenv: Environment variable loading
- pathlib: Cross-platform path handling

Environment Variables
---------------------
- DATABASE_URL: SQLAlchemy async URL
  (default: sqlite+aiosqlite:///./data/progression.db)
- DATABASE_POOL_SIZE / DATABASE_MAX_OVERFLOW / DATABASE_POOL_RECYCLE /
  DATABASE_POOL_TIMEOUT / DATABASE_STATEMENT_TIMEOUT_MS / DATABASE_ECHO
- ENVIRONMENT: development | testing | staging | production
- DEBUG, LOG_LEVEL, LOG_JSON, LOG_TO_FILE
- LOGS_DIR, CONFIG_DIR
"""

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# ============================================================================
# Enums
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not initialized yet at bootstrap
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


# ============================================================================
# Load Tracking
# ============================================================================


class _ConfigLoadMetrics:
    """
    Tracks which configuration values came from environment variables
    versus defaults, and any validation problems encountered.
    """

    def __init__(self) -> None:
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool) -> None:
        self.env_vars_loaded[key] = from_env

    def record_validation_error(self, key: str, error: str) -> None:
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "last_reload": self.last_reload,
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration.

    Usage
    -----
    >>> db_url = Config.DATABASE_URL
    >>> if Config.is_testing():
    ...     ...
    """

    _metrics: _ConfigLoadMetrics = _ConfigLoadMetrics()
    _validated: bool = False

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = "sqlite+aiosqlite:///./data/progression.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_RECYCLE: int = 1800
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_STATEMENT_TIMEOUT_MS: int = 30_000
    DATABASE_ECHO: bool = False

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_TO_FILE: bool = False

    # =========================================================================
    # Directory Configuration
    # =========================================================================

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    DATA_DIR = PROJECT_ROOT / "data"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Parse an integer from the environment, falling back to ``default``
        when unset, malformed, or out of bounds.

        Example
        -------
        >>> Config._safe_int("DATABASE_POOL_SIZE", 10, min_val=1, max_val=200)
        10
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if min_val is not None and value < min_val:
            error = f"{key}={value} is below minimum {min_val}, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if max_val is not None and value > max_val:
            error = f"{key}={value} exceeds maximum {max_val}, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        cls._metrics.record_env_load(key, True)
        return value

    @classmethod
    def _parse_bool(cls, key: str, raw_value: str) -> Optional[bool]:
        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False

        error = f"{key}='{raw_value}' is not a valid boolean"
        logging.warning(error)
        cls._metrics.record_validation_error(key, error)
        return None

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Parse a boolean from the environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False)
            return default

        value = cls._parse_bool(key, raw_value)
        if value is None:
            return default

        cls._metrics.record_env_load(key, True)
        return value

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        raw_value = os.getenv(key)
        cls._metrics.record_env_load(key, raw_value is not None)
        if raw_value is None:
            return None
        return cls._parse_bool(key, raw_value)

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        value = os.getenv(key, default)
        cls._metrics.record_env_load(key, key in os.environ)
        return value

    @classmethod
    def _safe_path(cls, key: str, default: Path) -> Path:
        raw_value = os.getenv(key)
        cls._metrics.record_env_load(key, raw_value is not None)
        if not raw_value:
            return default
        path = Path(raw_value)
        return path if path.is_absolute() else (cls.PROJECT_ROOT / path)

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables.

        Called automatically on module import; may be called again to pick
        up changed environment values (tests do this after patching env).
        """
        cls.DATABASE_URL = cls._safe_str(
            "DATABASE_URL", "sqlite+aiosqlite:///./data/progression.db"
        )
        cls.DATABASE_POOL_SIZE = cls._safe_int(
            "DATABASE_POOL_SIZE", 10, min_val=1, max_val=200
        )
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int(
            "DATABASE_MAX_OVERFLOW", 10, min_val=0, max_val=200
        )
        cls.DATABASE_POOL_RECYCLE = cls._safe_int(
            "DATABASE_POOL_RECYCLE", 1800, min_val=60
        )
        cls.DATABASE_POOL_TIMEOUT = cls._safe_int(
            "DATABASE_POOL_TIMEOUT", 30, min_val=1, max_val=600
        )
        cls.DATABASE_STATEMENT_TIMEOUT_MS = cls._safe_int(
            "DATABASE_STATEMENT_TIMEOUT_MS", 30_000, min_val=100
        )
        cls.DATABASE_ECHO = cls._safe_bool("DATABASE_ECHO", False)

        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "development")
        ).value
        cls.DEBUG = cls._safe_bool("DEBUG", False)
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")
        cls.LOG_TO_FILE = cls._safe_bool("LOG_TO_FILE", False)

        cls.LOGS_DIR = cls._safe_path("LOGS_DIR", cls.PROJECT_ROOT / "logs")
        cls.CONFIG_DIR = cls._safe_path("CONFIG_DIR", cls.PROJECT_ROOT / "config")

        cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Load and validate configuration on startup.

        Raises
        ------
        ValueError
            If DATABASE_URL is empty in production.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)
        cls.load()

        try:
            if not cls.DATABASE_URL:
                raise ValueError("DATABASE_URL environment variable is required")

            if cls.is_production() and cls.DATABASE_URL.startswith("sqlite"):
                logger.warning("Production environment using a SQLite database")

            valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
            if cls.LOG_LEVEL.upper() not in valid_log_levels:
                logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
                cls.LOG_LEVEL = "INFO"

            if cls.is_production() and cls.DEBUG:
                logger.warning("DEBUG mode enabled in production")

            cls._validated = True

        except ValueError as e:
            logger.warning(f"Config validation warning: {e}")
            if cls.is_production():
                raise

    @classmethod
    def reload(cls) -> None:
        """Force a fresh load from the environment."""
        cls._validated = False
        cls.validate()

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == Environment.PRODUCTION.value

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT.lower() == Environment.DEVELOPMENT.value

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT.lower() == Environment.TESTING.value

    # =========================================================================
    # Summary
    # =========================================================================

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Non-sensitive configuration summary for debugging.

        Example
        -------
        >>> Config.get_config_summary()["environment"]
        'development'
        """
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "database_scheme": cls.DATABASE_URL.split(":", 1)[0],
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "config_dir": str(cls.CONFIG_DIR),
            **cls._metrics.get_summary(),
        }


# Auto-validate on import
Config.validate()
