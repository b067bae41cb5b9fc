"""
Level Curve

Purpose
-------
Single source of truth for experience -> level. Every call site (settlement,
display, tests) goes through one precomputed, versioned threshold table.

Curve
-----
``T[0] = 0`` and ``T[i] = T[i-1] + ceil(base * growth**(i-1))`` for
``i < max_level``. ``level_for(e)`` is the greatest ``i + 1`` with
``T[i] <= e``, found by binary search, so a single grant may cross any
number of levels.

The arithmetic runs in ``Decimal``: in binary floats ``100 * 1.05`` is
``105.00000000000001`` and would ceil to 106.

Usage
-----
    from src.domain.level_curve import LevelCurve

    curve = LevelCurve()
    curve.thresholds[:3]    # (0, 100, 205)
    curve.level_for(250)    # 3
"""

from __future__ import annotations

from bisect import bisect_right
from decimal import ROUND_CEILING, Decimal, localcontext
from functools import lru_cache
from typing import Any, Optional

from src.domain.models.base import DomainValidationError, validate_positive

DEFAULT_BASE = 100
DEFAULT_GROWTH = 1.05
DEFAULT_MAX_LEVEL = 100


class LevelCurve:
    """
    Immutable experience-to-level mapping.

    Args:
        base: Experience needed to go from level 1 to level 2
        growth: Per-level compounding factor (>= 1)
        max_level: Highest reachable level

    Raises:
        DomainValidationError: If the constants cannot produce a monotonic table
    """

    __slots__ = ("_base", "_growth", "_max_level", "_thresholds")

    def __init__(
        self,
        base: int = DEFAULT_BASE,
        growth: float = DEFAULT_GROWTH,
        max_level: int = DEFAULT_MAX_LEVEL,
    ) -> None:
        validate_positive(base, "base")
        validate_positive(max_level, "max_level")
        if growth < 1:
            raise DomainValidationError(f"growth must be >= 1, got {growth}", field="growth")

        self._base = int(base)
        self._growth = float(growth)
        self._max_level = int(max_level)
        self._thresholds = self._build_table(self._base, self._growth, self._max_level)

    @staticmethod
    def _build_table(base: int, growth: float, max_level: int) -> tuple[int, ...]:
        with localcontext() as ctx:
            ctx.prec = 60
            step_base = Decimal(base)
            factor = Decimal(str(growth))
            table = [0]
            for i in range(1, max_level):
                step = (step_base * factor ** (i - 1)).to_integral_value(rounding=ROUND_CEILING)
                table.append(table[-1] + int(step))
        return tuple(table)

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def thresholds(self) -> tuple[int, ...]:
        """Cumulative experience needed for each level (index 0 is level 1)."""
        return self._thresholds

    @property
    def max_level(self) -> int:
        return self._max_level

    @property
    def version(self) -> str:
        """Stable tag identifying the curve constants."""
        return f"geometric:{self._base}:{self._growth:g}:{self._max_level}"

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def level_for(self, total_experience: int) -> int:
        """
        Level reached with ``total_experience`` cumulative experience.

        Args:
            total_experience: Non-negative cumulative experience

        Returns:
            Level in [1, max_level]

        Raises:
            DomainValidationError: If total_experience is negative

        Example:
            >>> LevelCurve().level_for(0)
            1
            >>> LevelCurve().level_for(250)
            3
        """
        if isinstance(total_experience, bool) or not isinstance(total_experience, int):
            raise DomainValidationError(
                f"experience must be an integer, got {total_experience!r}", field="experience"
            )
        if total_experience < 0:
            raise DomainValidationError(
                f"experience must be non-negative, got {total_experience}", field="experience"
            )
        return bisect_right(self._thresholds, total_experience)

    def threshold_for(self, level: int) -> int:
        """Cumulative experience at which ``level`` is reached."""
        if not 1 <= level <= self._max_level:
            raise DomainValidationError(
                f"level must be between 1 and {self._max_level}, got {level}", field="level"
            )
        return self._thresholds[level - 1]

    def experience_to_next(self, total_experience: int) -> int:
        """Experience still needed for the next level (0 at max level)."""
        level = self.level_for(total_experience)
        if level >= self._max_level:
            return 0
        return self._thresholds[level] - total_experience

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LevelCurve):
            return NotImplemented
        return self.version == other.version

    def __hash__(self) -> int:
        return hash(self.version)

    def __repr__(self) -> str:
        return f"LevelCurve(base={self._base}, growth={self._growth}, max_level={self._max_level})"


@lru_cache(maxsize=8)
def _cached_curve(base: int, growth: float, max_level: int) -> LevelCurve:
    return LevelCurve(base=base, growth=growth, max_level=max_level)


def default_curve(config_manager: Optional[Any] = None) -> LevelCurve:
    """
    Curve built from ``progression.level_curve.*`` configuration.

    Args:
        config_manager: Object exposing ``get(key, default)``; defaults to
            the global ConfigManager.
    """
    if config_manager is None:
        from src.core.config.manager import ConfigManager

        config_manager = ConfigManager

    return _cached_curve(
        int(config_manager.get("progression.level_curve.base", DEFAULT_BASE)),
        float(config_manager.get("progression.level_curve.growth", DEFAULT_GROWTH)),
        int(config_manager.get("progression.level_curve.max_level", DEFAULT_MAX_LEVEL)),
    )


def level_for(total_experience: int) -> int:
    """Convenience wrapper over the configured default curve."""
    return default_curve().level_for(total_experience)
