"""
ConfigManager: dynamic, cache-backed game configuration access (2025).

Purpose
-------
- Provide hierarchical, dot-notation access to tunable balance values
  (level curve, reward table, match constants, club limits).
- Back configuration with YAML defaults plus in-process overrides.

Responsibilities
----------------
- Load and deep-merge every YAML file found under ``Config.CONFIG_DIR``.
- Overlay runtime overrides (tests, admin tooling) on top of YAML defaults.
- Serve reads from an in-memory cache; never raise on a missing key.

Key Design Decisions
--------------------
- YAML is the single source for **defaults**; overrides are process-local.
- Overrides are stored flat by dot key and win over any nested YAML value.
- Classmethod singleton, mirroring ``Config`` and ``DatabaseService``.

Dependencies
------------
- PyYAML for parsing.
- ``src.core.config.config.Config`` for the config directory.
- ``src.core.logging.logger.get_logger`` for structured logging.
"""

from __future__ import annotations

import copy
import threading
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

from src.core.config.config import Config
from src.core.config.errors import ConfigInitializationError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManager:
    """
    Game configuration management with YAML defaults and overrides.

    Examples
    --------
    >>> ConfigManager.get("rewards.win.exp")
    60
    >>> ConfigManager.set_override("progression.points_per_level", 3)
    >>> ConfigManager.get("progression.points_per_level")
    3
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None
    _lock = threading.Lock()

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge ``source`` into ``target`` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}

        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return merged

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.error(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                raise ConfigInitializationError(
                    f"Could not load config file {yaml_file}: {exc}"
                ) from exc

            if isinstance(data, dict):
                cls._deep_merge_dict(merged, data)
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        logger.info(
            "YAML configs loaded",
            extra={
                "yaml_file_count": len(yaml_files),
                "top_level_keys": sorted(merged.keys()),
            },
        )
        return merged

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults. Safe to call repeatedly; reloads from disk.

        Raises
        ------
        ConfigInitializationError
            If a YAML file exists but cannot be parsed.
        """
        directory = Path(config_dir) if config_dir is not None else Path(Config.CONFIG_DIR)
        defaults = cls._load_yaml_configs(directory)

        with cls._lock:
            cls._defaults = defaults
            cls._config_dir = directory
            cls._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Drop all loaded defaults and overrides (primarily for tests)."""
        with cls._lock:
            cls._defaults = {}
            cls._overrides = {}
            cls._initialized = False
            cls._config_dir = None

    @classmethod
    def _ensure_initialized(cls) -> None:
        if not cls._initialized:
            logger.debug("ConfigManager accessed before initialize(); loading lazily")
            cls.initialize()

    # =========================================================================
    # READS
    # =========================================================================

    @classmethod
    def _resolve(cls, source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Overrides are checked first (exact key, then any overridden parent
        section), then YAML defaults, then ``default``.
        """
        cls._ensure_initialized()

        if key in cls._overrides:
            return copy.deepcopy(cls._overrides[key])

        value = cls._resolve(cls._defaults, key)

        # A section read (e.g. "rewards") must reflect nested overrides.
        if isinstance(value, dict):
            merged = copy.deepcopy(value)
            prefix = f"{key}."
            for override_key, override_value in cls._overrides.items():
                if override_key.startswith(prefix):
                    cls._assign(merged, override_key[len(prefix):], override_value)
            return merged

        if value is _MISSING:
            return default
        return value

    @classmethod
    def get_int(cls, key: str, default: int = 0) -> int:
        return int(cls.get(key, default))

    @classmethod
    def get_float(cls, key: str, default: float = 0.0) -> float:
        return float(cls.get(key, default))

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Return all top-level configuration keys."""
        cls._ensure_initialized()
        return sorted(set(cls._defaults) | {k.split(".")[0] for k in cls._overrides})

    # =========================================================================
    # OVERRIDES
    # =========================================================================

    @staticmethod
    def _assign(target: Dict[str, Any], dotted: str, value: Any) -> None:
        parts = dotted.split(".")
        node = target
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = copy.deepcopy(value)

    @classmethod
    def set_override(cls, key: str, value: Any) -> None:
        """Override a single dot-notation key at runtime."""
        with cls._lock:
            cls._overrides[key] = copy.deepcopy(value)

        logger.info(
            "Configuration override set",
            extra={"config_key": key, "value_type": type(value).__name__},
        )

    @classmethod
    def clear_overrides(cls) -> None:
        with cls._lock:
            cls._overrides = {}


__all__ = ["ConfigManager"]
