"""
Character value objects.

Purpose
-------
Immutable representation of a character's stat vector, shared by the match
simulator (which averages it) and the character service (which validates
and allocates into it).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional

from src.domain.models.base import DomainValidationError, validate_range

STAT_NAMES: tuple[str, ...] = (
    "passing",
    "shooting",
    "dribbling",
    "speed",
    "defense",
    "power",
)
DEFAULT_STAT_VALUE = 50
STAT_MIN = 0
STAT_MAX = 100


@dataclass(frozen=True)
class StatProfile:
    """
    Immutable stat vector, each stat bounded to [0, 100].

    Attributes
    ----------
    values : Dict[str, int]
        One entry per name in ``STAT_NAMES``.
    """

    values: Dict[str, int] = field(
        default_factory=lambda: {name: DEFAULT_STAT_VALUE for name in STAT_NAMES}
    )

    def __post_init__(self) -> None:
        unknown = set(self.values) - set(STAT_NAMES)
        if unknown:
            raise DomainValidationError(
                f"unknown stats: {', '.join(sorted(unknown))}", field="stats"
            )
        for name in STAT_NAMES:
            if name not in self.values:
                raise DomainValidationError(f"missing stat '{name}'", field=name)
            validate_range(self.values[name], STAT_MIN, STAT_MAX, name)

    @classmethod
    def from_partial(
        cls,
        stats: Optional[Mapping[str, int]] = None,
        default: int = DEFAULT_STAT_VALUE,
    ) -> StatProfile:
        """Build a full profile, filling unspecified stats with ``default``."""
        merged = {name: default for name in STAT_NAMES}
        for name, value in (stats or {}).items():
            if isinstance(value, bool) or not isinstance(value, int):
                raise DomainValidationError(f"{name} must be an integer", field=name)
            merged[name] = value
        return cls(values=merged)

    def average(self) -> float:
        return sum(self.values[name] for name in STAT_NAMES) / len(STAT_NAMES)

    def increment(self, name: str, cap: int = STAT_MAX) -> StatProfile:
        """
        Return a new profile with ``name`` raised by one.

        Raises
        ------
        DomainValidationError
            If ``name`` is not a known stat or the stat is already at ``cap``.
        """
        if name not in STAT_NAMES:
            raise DomainValidationError(f"unknown stat '{name}'", field="skill_key")
        if self.values[name] >= cap:
            raise DomainValidationError(f"{name} is already at {cap}", field=name)
        return replace(self, values={**self.values, name: self.values[name] + 1})

    def as_dict(self) -> Dict[str, int]:
        return {name: self.values[name] for name in STAT_NAMES}
