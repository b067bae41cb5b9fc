"""
Unit Tests for MatchOutcomeSimulator
====================================

Test Coverage
-------------
- Advantage from stats and levels
- Scoring for favoured, unfavoured and even matches
- Half-up rounding of the favoured side's score
- Tie-break toward the advantaged side, or the opponent when even
- Score clamping
- Determinism under a seeded source
"""

import random

import pytest

from src.domain.match_simulator import (
    MatchOutcomeSimulator,
    RandomSource,
    compute_advantage,
    stat_average,
)
from src.domain.models.character import STAT_NAMES, StatProfile
from tests.conftest import StubRandom


def uniform(value: int) -> dict:
    return {name: value for name in STAT_NAMES}


@pytest.mark.unit
class TestAdvantage:
    """Test the advantage formula."""

    def test_missing_stats_count_as_fifty(self):
        assert stat_average({"speed": 80}) == pytest.approx(55.0)

    def test_profile_and_mapping_agree(self):
        profile = StatProfile.from_partial({"power": 90})

        assert stat_average(profile) == stat_average(profile.as_dict())

    def test_stats_and_levels_combine(self):
        # (60 - 50) / 100 + (4 - 2) * 0.1
        advantage = compute_advantage(uniform(60), uniform(50), 4, 2)

        assert advantage == pytest.approx(0.3)

    def test_random_module_satisfies_protocol(self):
        assert isinstance(random.Random(1), RandomSource)


@pytest.mark.unit
class TestScoring:
    """Test score computation with a fixed base score."""

    def test_even_match_is_a_draw(self):
        # Arrange
        simulator = MatchOutcomeSimulator()

        # Act
        result = simulator.simulate(uniform(50), uniform(50), 3, 3, StubRandom(base=2, roll=0.2), 1, 2)

        # Assert
        assert (result.actor_score, result.opponent_score) == (2, 2)
        assert result.is_draw
        assert result.winner_id is None
        assert result.outcome_kind == "draw"

    def test_favoured_actor_wins(self):
        result = MatchOutcomeSimulator().simulate(
            uniform(80), uniform(50), 3, 3, StubRandom(base=2), actor_id=1, opponent_id=2
        )

        assert (result.actor_score, result.opponent_score) == (3, 2)
        assert result.winner_id == 1
        assert result.outcome_kind == "win"

    def test_unfavoured_actor_loses(self):
        result = MatchOutcomeSimulator().simulate(
            uniform(50), uniform(80), 3, 3, StubRandom(base=2), actor_id=1, opponent_id=2
        )

        assert (result.actor_score, result.opponent_score) == (2, 3)
        assert result.winner_id == 2
        assert result.outcome_kind == "loss"

    def test_tie_broken_for_advantaged_side_on_high_roll(self):
        # Advantage 0.05: both sides score 2 before the tie-break.
        result = MatchOutcomeSimulator().simulate(
            uniform(55), uniform(50), 3, 3, StubRandom(base=2, roll=0.9), 1, 2
        )

        assert (result.actor_score, result.opponent_score) == (3, 2)

    def test_even_tie_goes_to_opponent_on_high_roll(self):
        result = MatchOutcomeSimulator().simulate(
            uniform(50), uniform(50), 3, 3, StubRandom(base=2, roll=0.9), 1, 2
        )

        assert (result.actor_score, result.opponent_score) == (2, 3)
        assert result.winner_id == 2

    def test_half_goal_rounds_up(self):
        # Advantage 0.5 at base 3: 3 * 1.5 = 4.5 -> 5.
        result = MatchOutcomeSimulator().simulate(
            uniform(100), uniform(50), 1, 1, StubRandom(base=3), 1, 2
        )

        assert (result.actor_score, result.opponent_score) == (5, 2)

    def test_quarter_advantage_rounds_up_at_base_two(self):
        # 2 * 1.25 = 2.5 -> 3
        result = MatchOutcomeSimulator().simulate(
            uniform(75), uniform(50), 1, 1, StubRandom(base=2), 1, 2
        )

        assert (result.actor_score, result.opponent_score) == (3, 2)

    def test_tie_kept_on_low_roll(self):
        result = MatchOutcomeSimulator().simulate(
            uniform(55), uniform(50), 3, 3, StubRandom(base=2, roll=0.2), 1, 2
        )

        assert result.is_draw

    def test_scores_clamped_to_max(self):
        # Arrange
        simulator = MatchOutcomeSimulator(max_score=2)

        # Act
        result = simulator.simulate(uniform(100), uniform(0), 50, 1, StubRandom(base=2), 1, 2)

        # Assert
        assert result.actor_score == 2
        assert result.opponent_score == 0

    def test_overwhelming_opponent_shuts_out_actor(self):
        result = MatchOutcomeSimulator().simulate(
            uniform(0), uniform(100), 1, 30, StubRandom(base=3), 1, 2
        )

        assert result.actor_score == 0
        assert result.opponent_score == 4


@pytest.mark.unit
class TestDeterminism:
    """Test seeded reproducibility and bounds."""

    def test_same_seed_same_result(self):
        simulator = MatchOutcomeSimulator()

        first = simulator.simulate(uniform(60), uniform(55), 4, 5, random.Random(42), 1, 2)
        second = simulator.simulate(uniform(60), uniform(55), 4, 5, random.Random(42), 1, 2)

        assert first == second

    def test_scores_always_in_range(self):
        simulator = MatchOutcomeSimulator()
        rng = random.Random(7)
        for _ in range(200):
            actor = {name: rng.randint(0, 100) for name in STAT_NAMES}
            opponent = {name: rng.randint(0, 100) for name in STAT_NAMES}
            result = simulator.simulate(actor, opponent, rng.randint(1, 40), rng.randint(1, 40), rng)
            assert 0 <= result.actor_score <= 7
            assert 0 <= result.opponent_score <= 7

    def test_from_config(self, config_manager):
        config_manager.set_override("match.max_score", 5)

        simulator = MatchOutcomeSimulator.from_config(config_manager)

        assert simulator.max_score == 5
