"""
Integration Tests for SettlementEngine
======================================

Purpose
-------
Exercise exactly-once crediting against a real DatabaseService.

Test Coverage
-------------
- Multi-level settlement and skill point award
- Idempotent replay (same and different payloads, strict mode)
- Duplicate-insert race resolution
- Balance floor and missing entities
- Outcome pricing through RewardPolicy
- Events published after commit
"""

from decimal import Decimal

import pytest

from src.core.logging.logger import get_logger
from src.modules.progression.settlement_service import SettlementEngine
from src.modules.shared.exceptions import (
    NotFoundError,
    SettlementMismatchError,
    ValidationError,
)


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestSettle:
    """Test first-time settlement."""

    async def test_single_grant_crosses_two_levels(self, make_character, settlement_engine, character_service):
        """250 experience from level 1 reaches level 3 and awards 10 points."""
        # Arrange
        hero = await make_character("Hero")

        # Act
        result = await settlement_engine.settle(hero["id"], "match:1", 250, 80, source="match")

        # Assert
        assert result.replayed is False
        assert (result.old_level, result.new_level, result.levels_gained) == (1, 3, 2)
        assert result.skill_points_awarded == 10
        assert result.new_balance == Decimal("180.00")

        stored = await character_service.get_character(hero["id"])
        assert stored["experience"] == 250
        assert stored["level"] == 3
        assert stored["available_skill_points"] == 10
        assert stored["wallet"]["balance"] == Decimal("180.00")

    async def test_negative_experience_rejected(self, make_character, settlement_engine, character_service):
        # Arrange
        hero = await make_character("Hero")
        await settlement_engine.settle(hero["id"], "grant", 250, 0)

        # Act / Assert
        with pytest.raises(ValidationError):
            await settlement_engine.settle(hero["id"], "penalty", -200, 0)

        stored = await character_service.get_character(hero["id"])
        assert stored["experience"] == 250
        assert stored["level"] == 3

    async def test_rejected_penalty_leaves_no_record(self, make_character, settlement_engine):
        hero = await make_character("Hero")

        with pytest.raises(ValidationError):
            await settlement_engine.settle(hero["id"], "penalty", -500, 0)

        # The event id stays free for a valid grant.
        result = await settlement_engine.settle(hero["id"], "penalty", 0, 10)
        assert result.replayed is False
        assert result.new_experience == 0
        assert result.new_level == 1

    async def test_bonus_skill_points_added(self, make_character, settlement_engine):
        hero = await make_character("Hero")

        result = await settlement_engine.settle(hero["id"], "gift", 0, 0, bonus_skill_points=3)

        assert result.skill_points_awarded == 3

    async def test_balance_cannot_go_negative(self, make_character, settlement_engine, character_service):
        # Arrange
        hero = await make_character("Hero")

        # Act
        with pytest.raises(ValidationError) as exc_info:
            await settlement_engine.settle(hero["id"], "fine", 10, -500)

        # Assert
        assert exc_info.value.field == "coins_delta"
        stored = await character_service.get_character(hero["id"])
        assert stored["experience"] == 0
        assert await settlement_engine.get_settlement("fine") is None

    async def test_missing_character(self, database, settlement_engine):
        with pytest.raises(NotFoundError):
            await settlement_engine.settle(999, "ghost", 10, 10)

    @pytest.mark.parametrize("coins", [1.5, "abc", "NaN"])
    async def test_bad_currency_rejected(self, make_character, settlement_engine, coins):
        hero = await make_character("Hero")

        with pytest.raises(ValidationError):
            await settlement_engine.settle(hero["id"], "bad", 10, coins)

    async def test_fractional_currency_kept_to_cents(self, make_character, settlement_engine):
        hero = await make_character("Hero")

        result = await settlement_engine.settle(hero["id"], "tip", 0, "0.50")

        assert result.new_balance == Decimal("100.50")


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestReplay:
    """Test that an event id is applied at most once."""

    async def test_same_event_replayed(self, make_character, settlement_engine, character_service):
        # Arrange
        hero = await make_character("Hero")
        first = await settlement_engine.settle(hero["id"], "match:7", 250, 80)

        # Act
        second = await settlement_engine.settle(hero["id"], "match:7", 250, 80)

        # Assert
        assert second.replayed is True
        assert second.new_level == first.new_level
        assert second.new_balance == first.new_balance
        stored = await character_service.get_character(hero["id"])
        assert stored["experience"] == 250
        assert stored["available_skill_points"] == 10

    async def test_different_payload_returns_stored_result(self, make_character, settlement_engine, character_service):
        hero = await make_character("Hero")
        await settlement_engine.settle(hero["id"], "match:7", 250, 80)

        replay = await settlement_engine.settle(hero["id"], "match:7", 999, 0)

        assert replay.replayed is True
        assert replay.experience_delta == 250
        stored = await character_service.get_character(hero["id"])
        assert stored["experience"] == 250

    async def test_strict_mode_rejects_different_payload(self, make_character, config_manager, event_bus):
        # Arrange
        config_manager.set_override("progression.settlement.strict_replay", True)
        engine = SettlementEngine(config_manager, event_bus, get_logger("tests.strict"))
        hero = await make_character("Hero")
        await engine.settle(hero["id"], "match:7", 250, 80)

        # Act / Assert
        with pytest.raises(SettlementMismatchError):
            await engine.settle(hero["id"], "match:7", 100, 80)

        replay = await engine.settle(hero["id"], "match:7", 250, 80)
        assert replay.replayed is True

    async def test_lost_insert_race_replays_winner(
        self, make_character, settlement_engine, character_service, mocker
    ):
        """A duplicate insert after a stale existence check resolves to a replay."""
        # Arrange
        hero = await make_character("Hero")
        await settlement_engine.settle(hero["id"], "match:9", 250, 80)

        real_get = settlement_engine._records.get
        calls = {"count": 0}

        async def stale_first_read(session, id_value, **kwargs):
            calls["count"] += 1
            if calls["count"] == 1:
                return None
            return await real_get(session, id_value, **kwargs)

        mocker.patch.object(settlement_engine._records, "get", new=stale_first_read)

        # Act
        result = await settlement_engine.settle(hero["id"], "match:9", 250, 80)

        # Assert
        assert result.replayed is True
        stored = await character_service.get_character(hero["id"])
        assert stored["experience"] == 250
        assert stored["wallet"]["balance"] == Decimal("180.00")

    async def test_get_settlement(self, make_character, settlement_engine):
        hero = await make_character("Hero")
        await settlement_engine.settle(hero["id"], "match:3", 40, 50)

        stored = await settlement_engine.get_settlement("match:3")

        assert stored is not None
        assert stored.experience_delta == 40
        assert stored.replayed is False


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestSettleOutcome:
    """Test outcome pricing."""

    async def test_win_against_stronger_opponent(self, make_character, settlement_engine):
        """Level 3 beating level 5 earns 72 exp and 96 coins."""
        # Arrange
        hero = await make_character("Hero")
        await settlement_engine.settle(hero["id"], "seed", 250, 0)

        # Act
        result = await settlement_engine.settle_outcome(
            hero["id"],
            {"event_id": "match:42", "kind": "win", "actor_level": 3, "opponent_level": 5},
        )

        # Assert
        assert result.experience_delta == 72
        assert result.currency_delta == Decimal("96.00")

    async def test_unknown_kind(self, make_character, settlement_engine):
        hero = await make_character("Hero")

        with pytest.raises(ValidationError):
            await settlement_engine.settle_outcome(
                hero["id"],
                {"event_id": "match:1", "kind": "forfeit", "actor_level": 1, "opponent_level": 1},
            )

    async def test_missing_field(self, make_character, settlement_engine):
        hero = await make_character("Hero")

        with pytest.raises(ValidationError) as exc_info:
            await settlement_engine.settle_outcome(hero["id"], {"event_id": "match:1", "kind": "win"})

        assert exc_info.value.field == "actor_level"


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestSettlementEvents:
    """Test events published after commit."""

    async def test_level_up_and_settled_emitted_once(self, make_character, settlement_engine, recorder):
        # Arrange
        hero = await make_character("Hero")

        # Act
        await settlement_engine.settle(hero["id"], "match:1", 250, 80)
        await settlement_engine.settle(hero["id"], "match:1", 250, 80)

        # Assert
        settled = recorder.named("progression.settled")
        level_ups = recorder.named("progression.level_up")
        assert len(settled) == 1
        assert settled[0]["event_id"] == "match:1"
        assert level_ups == [
            {
                "character_id": hero["id"],
                "event_id": "match:1",
                "old_level": 1,
                "new_level": 3,
                "levels_gained": 2,
                "skill_points_awarded": 10,
            }
        ]

    async def test_no_level_up_event_without_level_gain(self, make_character, settlement_engine, recorder):
        hero = await make_character("Hero")

        await settlement_engine.settle(hero["id"], "small", 10, 0)

        assert len(recorder.named("progression.settled")) == 1
        assert recorder.named("progression.level_up") == []

    async def test_failed_settlement_emits_nothing(self, make_character, settlement_engine, recorder):
        hero = await make_character("Hero")

        with pytest.raises(ValidationError):
            await settlement_engine.settle(hero["id"], "fine", 0, -1000)

        assert recorder.named("progression.settled") == []
