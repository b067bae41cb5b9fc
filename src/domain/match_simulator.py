"""
Match Outcome Simulator

Purpose
-------
Score a match against a bot opponent from two stat profiles, two levels and
an injected randomness source. Deterministic for a seeded source, so tests
pin outcomes with ``random.Random(seed)``.

Scoring
-------
    advantage = (actor_avg - opponent_avg) / 100 + (actor_level - opponent_level) * 0.1
    base      = rng.randint(1, 3)

    advantage > 0:  actor    = round_half_up(base * (1 + min(adv, 0.5)))
                    opponent = max(0, base - floor(adv * 2))
    otherwise:      opponent = round_half_up(base * (1 + min(|adv|, 0.3)))
                    actor    = max(0, base - floor(|adv| * 1.5))

A tie goes one goal to the advantaged side when ``rng.random() > 0.5``; with
no advantage either way the bot opponent takes it. Scores are clamped to
[0, 7].
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional, Protocol, Sequence, TypeVar, Union, runtime_checkable

from src.domain.models.base import round_half_up
from src.domain.models.character import DEFAULT_STAT_VALUE, STAT_NAMES, StatProfile
from src.domain.models.match import MAX_SCORE, MatchResult

T = TypeVar("T")

StatsInput = Union[StatProfile, Mapping[str, int]]


@runtime_checkable
class RandomSource(Protocol):
    """Randomness capability; ``random.Random`` satisfies it."""

    def randint(self, a: int, b: int) -> int: ...

    def random(self) -> float: ...

    def choice(self, seq: Sequence[T]) -> T: ...


def stat_average(stats: StatsInput) -> float:
    """Mean over the fixed stat set; a missing stat counts as 50."""
    if isinstance(stats, StatProfile):
        return stats.average()
    return sum(stats.get(name, DEFAULT_STAT_VALUE) for name in STAT_NAMES) / len(STAT_NAMES)


def compute_advantage(
    actor_stats: StatsInput,
    opponent_stats: StatsInput,
    actor_level: int,
    opponent_level: int,
) -> float:
    return (stat_average(actor_stats) - stat_average(opponent_stats)) / 100 + (
        actor_level - opponent_level
    ) * 0.1


def _clamp(score: int, max_score: int) -> int:
    return max(0, min(max_score, score))


class MatchOutcomeSimulator:
    """
    Bot match scorer.

    Args:
        max_score: Upper clamp for either side's score
        base_score_min / base_score_max: Range of the shared base score
    """

    def __init__(
        self,
        max_score: int = MAX_SCORE,
        base_score_min: int = 1,
        base_score_max: int = 3,
    ) -> None:
        self.max_score = max_score
        self.base_score_min = base_score_min
        self.base_score_max = base_score_max

    @classmethod
    def from_config(cls, config_manager: Any) -> MatchOutcomeSimulator:
        return cls(
            max_score=int(config_manager.get("match.max_score", MAX_SCORE)),
            base_score_min=int(config_manager.get("match.base_score_min", 1)),
            base_score_max=int(config_manager.get("match.base_score_max", 3)),
        )

    def simulate(
        self,
        actor_stats: StatsInput,
        opponent_stats: StatsInput,
        actor_level: int,
        opponent_level: int,
        rng: RandomSource,
        actor_id: Optional[int] = None,
        opponent_id: Optional[int] = None,
    ) -> MatchResult:
        """
        Simulate one match.

        Args:
            actor_stats: Acting character's stats
            opponent_stats: Opponent (bot) stats
            actor_level: Acting character's level
            opponent_level: Opponent level
            rng: Injected randomness source
            actor_id / opponent_id: Reported back as ``winner_id``

        Returns:
            MatchResult with clamped scores
        """
        advantage = compute_advantage(actor_stats, opponent_stats, actor_level, opponent_level)
        base = rng.randint(self.base_score_min, self.base_score_max)

        if advantage > 0:
            actor_score = round_half_up(base * (1 + min(advantage, 0.5)))
            opponent_score = max(0, base - math.floor(advantage * 2))
        else:
            magnitude = abs(advantage)
            opponent_score = round_half_up(base * (1 + min(magnitude, 0.3)))
            actor_score = max(0, base - math.floor(magnitude * 1.5))

        if actor_score == opponent_score and rng.random() > 0.5:
            if advantage > 0:
                actor_score += 1
            else:
                opponent_score += 1

        actor_score = _clamp(actor_score, self.max_score)
        opponent_score = _clamp(opponent_score, self.max_score)

        if actor_score > opponent_score:
            winner_id = actor_id
        elif opponent_score > actor_score:
            winner_id = opponent_id
        else:
            winner_id = None

        return MatchResult(
            actor_score=actor_score,
            opponent_score=opponent_score,
            winner_id=winner_id,
            advantage=advantage,
        )
