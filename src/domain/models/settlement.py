"""
Settlement value objects.

Purpose
-------
Immutable shapes that cross the settlement boundary:

- ``OutcomeKind`` / ``OutcomeRequest``: what a caller asks to settle
- ``RewardGrant``: what RewardPolicy computed for an outcome
- ``SettlementResult``: what SettlementEngine applied (or replayed)

``SettlementResult`` round-trips through ``to_dict`` / ``from_dict`` because
the engine stores it verbatim on the SettlementRecord and returns the stored
copy on replay.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict

from src.domain.models.base import DomainValidationError, validate_non_negative, validate_not_empty


class OutcomeKind(str, Enum):
    WIN = "win"
    DRAW = "draw"
    LOSS = "loss"

    @classmethod
    def parse(cls, value: Any) -> OutcomeKind:
        """
        Accept an OutcomeKind or its string value (case-insensitive).

        Raises
        ------
        DomainValidationError
            For any other value.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise DomainValidationError(
            f"outcome kind must be one of win, draw, loss; got {value!r}", field="kind"
        )


@dataclass(frozen=True)
class OutcomeRequest:
    """
    Caller-supplied match outcome to settle.

    Attributes
    ----------
    event_id : str
        Caller-unique idempotency key.
    kind : OutcomeKind
    actor_level : int
    opponent_level : int
    """

    event_id: str
    kind: OutcomeKind
    actor_level: int
    opponent_level: int

    def __post_init__(self) -> None:
        validate_not_empty(self.event_id, "event_id")
        object.__setattr__(self, "kind", OutcomeKind.parse(self.kind))
        validate_non_negative(self.actor_level, "actor_level")
        validate_non_negative(self.opponent_level, "opponent_level")


@dataclass(frozen=True)
class RewardGrant:
    exp: int
    coins: int
    multiplier: float = 1.0

    def __post_init__(self) -> None:
        validate_non_negative(self.exp, "exp")
        validate_non_negative(self.coins, "coins")


@dataclass(frozen=True)
class SettlementResult:
    """
    Outcome of one settlement, as applied the first time.

    ``replayed`` is True when the result was loaded from an existing
    SettlementRecord instead of being computed by this call.
    """

    character_id: int
    event_id: str
    experience_delta: int
    currency_delta: Decimal
    old_experience: int
    new_experience: int
    old_level: int
    new_level: int
    levels_gained: int
    skill_points_awarded: int
    old_balance: Decimal
    new_balance: Decimal
    replayed: bool = False

    @property
    def leveled_up(self) -> bool:
        return self.levels_gained > 0

    def as_replay(self) -> SettlementResult:
        return replace(self, replayed=True)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe snapshot (decimals as strings) for storage and events."""
        data = asdict(self)
        for key in ("currency_delta", "old_balance", "new_balance"):
            data[key] = str(data[key])
        data["leveled_up"] = self.leveled_up
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SettlementResult:
        try:
            return cls(
                character_id=int(data["character_id"]),
                event_id=str(data["event_id"]),
                experience_delta=int(data["experience_delta"]),
                currency_delta=Decimal(str(data["currency_delta"])),
                old_experience=int(data["old_experience"]),
                new_experience=int(data["new_experience"]),
                old_level=int(data["old_level"]),
                new_level=int(data["new_level"]),
                levels_gained=int(data["levels_gained"]),
                skill_points_awarded=int(data["skill_points_awarded"]),
                old_balance=Decimal(str(data["old_balance"])),
                new_balance=Decimal(str(data["new_balance"])),
                replayed=bool(data.get("replayed", False)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DomainValidationError(f"malformed settlement snapshot: {exc}") from exc
