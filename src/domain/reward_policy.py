"""
Reward Policy

Purpose
-------
Pure mapping from a match outcome and the level gap to an experience/coin
grant. No persistence, no config access; ``from_config`` is the only place
that reads ConfigManager.

Formula
-------
- Base pair per outcome kind (win > draw > loss for both exp and coins).
- Opponent higher: multiplier ``1 + min(up_cap, up_step * gap)``.
- Opponent lower: multiplier ``1 - min(down_cap, down_step * gap)``.
- Result rounded half-up to whole units, then raised to the floor.

Example
-------
    >>> policy = RewardPolicy()
    >>> policy.reward_for("win", actor_level=3, opponent_level=5)
    RewardGrant(exp=72, coins=96, multiplier=1.2)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional, Tuple

from src.domain.models.base import DomainValidationError, round_half_up, validate_non_negative
from src.domain.models.settlement import OutcomeKind, RewardGrant

DEFAULT_BASE_REWARDS: dict[OutcomeKind, Tuple[int, int]] = {
    OutcomeKind.WIN: (60, 80),
    OutcomeKind.DRAW: (40, 50),
    OutcomeKind.LOSS: (20, 30),
}
DEFAULT_FLOOR: Tuple[int, int] = (10, 15)


def _dec(value: Any) -> Decimal:
    return Decimal(str(value))


class RewardPolicy:
    """
    Outcome -> reward calculator.

    Args:
        base_rewards: ``{kind: (exp, coins)}``
        floor: Minimum ``(exp, coins)`` any grant may have
        up_step / up_cap: Bonus per level the opponent is above the actor
        down_step / down_cap: Penalty per level the opponent is below

    Raises:
        DomainValidationError: If the base rewards are not ordered
            win > draw > loss, or a step/cap is negative.
    """

    def __init__(
        self,
        base_rewards: Optional[Mapping[Any, Tuple[int, int]]] = None,
        floor: Tuple[int, int] = DEFAULT_FLOOR,
        up_step: float = 0.1,
        up_cap: float = 0.5,
        down_step: float = 0.05,
        down_cap: float = 0.2,
    ) -> None:
        rewards = {
            OutcomeKind.parse(kind): (int(pair[0]), int(pair[1]))
            for kind, pair in (base_rewards or DEFAULT_BASE_REWARDS).items()
        }
        missing = set(OutcomeKind) - set(rewards)
        if missing:
            raise DomainValidationError(
                f"base rewards missing for: {', '.join(sorted(k.value for k in missing))}",
                field="base_rewards",
            )

        win, draw, loss = rewards[OutcomeKind.WIN], rewards[OutcomeKind.DRAW], rewards[OutcomeKind.LOSS]
        for index, label in ((0, "exp"), (1, "coins")):
            if not win[index] > draw[index] > loss[index]:
                raise DomainValidationError(
                    f"base {label} must satisfy win > draw > loss", field="base_rewards"
                )

        for name, value in (
            ("floor_exp", floor[0]),
            ("floor_coins", floor[1]),
            ("up_step", up_step),
            ("up_cap", up_cap),
            ("down_step", down_step),
            ("down_cap", down_cap),
        ):
            validate_non_negative(value, name)

        self._rewards = rewards
        self._floor = (int(floor[0]), int(floor[1]))
        self._up_step = _dec(up_step)
        self._up_cap = _dec(up_cap)
        self._down_step = _dec(down_step)
        self._down_cap = _dec(down_cap)

    @classmethod
    def from_config(cls, config_manager: Any) -> RewardPolicy:
        """Build from ``rewards.*`` keys of a ConfigManager-like object."""
        get = config_manager.get
        base = {
            kind: (
                int(get(f"rewards.{kind.value}.exp", DEFAULT_BASE_REWARDS[kind][0])),
                int(get(f"rewards.{kind.value}.coins", DEFAULT_BASE_REWARDS[kind][1])),
            )
            for kind in OutcomeKind
        }
        return cls(
            base_rewards=base,
            floor=(
                int(get("rewards.floor.exp", DEFAULT_FLOOR[0])),
                int(get("rewards.floor.coins", DEFAULT_FLOOR[1])),
            ),
            up_step=float(get("rewards.difficulty.up_step", 0.1)),
            up_cap=float(get("rewards.difficulty.up_cap", 0.5)),
            down_step=float(get("rewards.difficulty.down_step", 0.05)),
            down_cap=float(get("rewards.difficulty.down_cap", 0.2)),
        )

    def multiplier_for(self, actor_level: int, opponent_level: int) -> Decimal:
        gap = opponent_level - actor_level
        if gap > 0:
            return 1 + min(self._up_cap, self._up_step * gap)
        if gap < 0:
            return 1 - min(self._down_cap, self._down_step * -gap)
        return Decimal(1)

    def reward_for(self, kind: Any, actor_level: int, opponent_level: int) -> RewardGrant:
        """
        Compute the grant for one outcome.

        Args:
            kind: OutcomeKind or "win" / "draw" / "loss"
            actor_level: Level of the character being rewarded
            opponent_level: Level of the opponent

        Returns:
            RewardGrant with exp and coins at or above the floor
        """
        outcome = OutcomeKind.parse(kind)
        base_exp, base_coins = self._rewards[outcome]
        multiplier = self.multiplier_for(actor_level, opponent_level)

        exp = max(self._floor[0], round_half_up(base_exp * multiplier))
        coins = max(self._floor[1], round_half_up(base_coins * multiplier))
        return RewardGrant(exp=exp, coins=coins, multiplier=float(multiplier))
