"""
Unit Tests for LevelCurve
=========================

Test Coverage
-------------
- Threshold table shape and monotonicity
- level_for at and around thresholds
- Multi-level jumps from a single total
- Invalid input rejection
- Configuration-driven default curve
"""

import pytest

from src.domain.level_curve import LevelCurve, default_curve, level_for
from src.domain.models.base import DomainValidationError


@pytest.mark.unit
class TestThresholds:
    """Test the precomputed threshold table."""

    def test_first_thresholds(self):
        """Table starts 0, 100, 205, 316 with the default constants."""
        # Arrange
        curve = LevelCurve()

        # Act
        thresholds = curve.thresholds[:4]

        # Assert
        assert thresholds == (0, 100, 205, 316)

    def test_table_has_one_entry_per_level(self):
        curve = LevelCurve(max_level=100)

        assert len(curve.thresholds) == 100
        assert curve.max_level == 100

    def test_table_strictly_increasing(self):
        """Each step costs at least the base, so thresholds never repeat."""
        thresholds = LevelCurve().thresholds

        assert all(b > a for a, b in zip(thresholds, thresholds[1:]))

    def test_steps_never_shrink(self):
        thresholds = LevelCurve().thresholds
        steps = [b - a for a, b in zip(thresholds, thresholds[1:])]

        assert steps == sorted(steps)

    def test_flat_growth_gives_linear_table(self):
        curve = LevelCurve(base=50, growth=1.0, max_level=5)

        assert curve.thresholds == (0, 50, 100, 150, 200)

    def test_growth_below_one_rejected(self):
        with pytest.raises(DomainValidationError):
            LevelCurve(growth=0.9)

    def test_version_tracks_constants(self):
        assert LevelCurve().version == "geometric:100:1.05:100"
        assert LevelCurve(base=100) == LevelCurve()
        assert LevelCurve(base=120) != LevelCurve()


@pytest.mark.unit
class TestLevelFor:
    """Test the experience -> level lookup."""

    def test_zero_experience_is_level_one(self):
        assert LevelCurve().level_for(0) == 1

    @pytest.mark.parametrize(
        "experience, expected",
        [(99, 1), (100, 2), (204, 2), (205, 3), (250, 3), (315, 3), (316, 4)],
    )
    def test_boundaries(self, experience, expected):
        assert LevelCurve().level_for(experience) == expected

    def test_single_total_crosses_several_levels(self):
        """A grant may jump any number of levels at once."""
        # Arrange
        curve = LevelCurve()
        total = curve.threshold_for(10)

        # Act
        level = curve.level_for(total)

        # Assert
        assert level == 10

    def test_level_is_monotonic_in_experience(self):
        curve = LevelCurve()
        levels = [curve.level_for(e) for e in range(0, 5000, 7)]

        assert levels == sorted(levels)

    def test_caps_at_max_level(self):
        curve = LevelCurve(max_level=10)

        assert curve.level_for(10**9) == 10
        assert curve.experience_to_next(10**9) == 0

    def test_negative_experience_rejected(self):
        with pytest.raises(DomainValidationError) as exc_info:
            LevelCurve().level_for(-1)

        assert exc_info.value.field == "experience"

    @pytest.mark.parametrize("value", [True, 1.5, "100", None])
    def test_non_integer_rejected(self, value):
        with pytest.raises(DomainValidationError):
            LevelCurve().level_for(value)

    def test_experience_to_next(self):
        curve = LevelCurve()

        assert curve.experience_to_next(0) == 100
        assert curve.experience_to_next(250) == 66

    def test_threshold_for_out_of_range(self):
        with pytest.raises(DomainValidationError):
            LevelCurve(max_level=5).threshold_for(6)


@pytest.mark.unit
class TestDefaultCurve:
    """Test the configuration-driven curve."""

    def test_reads_configuration(self, config_manager):
        # Arrange
        config_manager.set_override("progression.level_curve.base", 50)
        config_manager.set_override("progression.level_curve.growth", 1.0)
        config_manager.set_override("progression.level_curve.max_level", 10)

        # Act
        curve = default_curve(config_manager)

        # Assert
        assert curve.thresholds[:3] == (0, 50, 100)
        assert curve.max_level == 10

    def test_module_level_lookup_uses_yaml_defaults(self):
        assert level_for(250) == 3
