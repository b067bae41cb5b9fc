"""
Match value objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from src.domain.models.base import validate_range

MAX_SCORE = 7


@dataclass(frozen=True)
class MatchResult:
    """
    Final score of a simulated match.

    Attributes
    ----------
    actor_score : int
        Goals for the acting character, in [0, 7].
    opponent_score : int
        Goals for the opponent, in [0, 7].
    winner_id : Optional[int]
        Id of the winning side, None on a draw (or when ids were not given).
    advantage : float
        The actor's computed advantage (positive favours the actor).
    """

    actor_score: int
    opponent_score: int
    winner_id: Optional[int]
    advantage: float

    def __post_init__(self) -> None:
        validate_range(self.actor_score, 0, MAX_SCORE, "actor_score")
        validate_range(self.opponent_score, 0, MAX_SCORE, "opponent_score")

    @property
    def is_draw(self) -> bool:
        return self.actor_score == self.opponent_score

    @property
    def actor_won(self) -> bool:
        return self.actor_score > self.opponent_score

    @property
    def outcome_kind(self) -> str:
        if self.is_draw:
            return "draw"
        return "win" if self.actor_won else "loss"
