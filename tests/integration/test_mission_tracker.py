"""
Integration Tests for MissionProgressTracker
============================================

Test Coverage
-------------
- Progress clamped to target
- Individual completion paid exactly once
- Club aggregate completion (single payout and per-member payout)
- Deadline, scope and mission type filtering
- Input validation
- Club payout guarded against a mission with no club
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from src.core.database.base import utc_now
from src.modules.missions.tracker import club_mission_event_id, mission_event_id
from src.modules.shared.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def make_club(membership_service):
    async def _make(name, *member_ids):
        club = await membership_service.create_club(name)
        for member_id in member_ids:
            await membership_service.join_club(club["id"], member_id)
        return club

    return _make


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestIndividualMissions:
    """Test per-character missions."""

    async def test_progress_accumulates_below_target(self, make_character, mission_tracker):
        # Arrange
        hero = await make_character("Hero")
        mission = await mission_tracker.create_mission("Win 3", "match_won", 3)

        # Act
        outcomes = await mission_tracker.record_event(hero["id"], "match_won", 2)

        # Assert
        assert len(outcomes) == 1
        assert outcomes[0].progress_value == 2
        assert outcomes[0].completed is False
        progress = await mission_tracker.get_mission_progress(mission["id"], hero["id"])
        assert progress["progress_value"] == 2
        assert progress["completed_at"] is None

    async def test_completion_clamps_and_pays(self, make_character, mission_tracker, character_service, recorder):
        # Arrange
        hero = await make_character("Hero")
        mission = await mission_tracker.create_mission("Win 3", "match_won", 3)
        await mission_tracker.record_event(hero["id"], "match_won", 2)

        # Act
        outcomes = await mission_tracker.record_event(hero["id"], "match_won", 5)

        # Assert
        assert outcomes[0].progress_value == 3
        assert outcomes[0].completed is True
        assert outcomes[0].settlements[0].event_id == mission_event_id(mission["id"], hero["id"])
        stored = await character_service.get_character(hero["id"])
        assert stored["experience"] == 100
        assert stored["wallet"]["balance"] == Decimal("300.00")
        assert len(recorder.named("mission.completed")) == 1

    async def test_completed_mission_never_pays_twice(self, make_character, mission_tracker, character_service):
        hero = await make_character("Hero")
        await mission_tracker.create_mission("Win 1", "match_won", 1)
        await mission_tracker.record_event(hero["id"], "match_won", 1)

        again = await mission_tracker.record_event(hero["id"], "match_won", 1)

        assert again == []
        stored = await character_service.get_character(hero["id"])
        assert stored["experience"] == 100

    async def test_each_character_completes_independently(self, make_character, mission_tracker):
        hero = await make_character("Hero")
        rival = await make_character("Rival")
        await mission_tracker.create_mission("Win 1", "match_won", 1)

        first = await mission_tracker.record_event(hero["id"], "match_won", 1)
        second = await mission_tracker.record_event(rival["id"], "match_won", 1)

        assert first[0].completed is True
        assert second[0].completed is True

    async def test_skill_point_reward(self, make_character, mission_tracker, character_service):
        hero = await make_character("Hero")
        await mission_tracker.create_mission(
            "Train", "training_done", 1, reward_exp=0, reward_coins=0, reward_skill_points=2
        )

        await mission_tracker.record_event(hero["id"], "training_done")

        stored = await character_service.get_character(hero["id"])
        assert stored["available_skill_points"] == 2

    async def test_other_event_types_ignored(self, make_character, mission_tracker):
        hero = await make_character("Hero")
        await mission_tracker.create_mission("Win 3", "match_won", 3)

        assert await mission_tracker.record_event(hero["id"], "match_played", 1) == []

    async def test_expired_mission_not_advanced(self, make_character, mission_tracker):
        hero = await make_character("Hero")
        await mission_tracker.create_mission(
            "Old", "match_won", 3, deadline=utc_now() - timedelta(days=1)
        )
        await mission_tracker.create_mission(
            "Current", "match_won", 3, deadline=utc_now() + timedelta(days=1)
        )

        outcomes = await mission_tracker.record_event(hero["id"], "match_won", 1)

        assert len(outcomes) == 1

    async def test_zero_magnitude_is_noop(self, make_character, mission_tracker):
        hero = await make_character("Hero")
        await mission_tracker.create_mission("Win 3", "match_won", 3)

        assert await mission_tracker.record_event(hero["id"], "match_won", 0) == []

    async def test_negative_magnitude_rejected(self, make_character, mission_tracker):
        hero = await make_character("Hero")

        with pytest.raises(ValidationError):
            await mission_tracker.record_event(hero["id"], "match_won", -1)

    async def test_unknown_character(self, database, mission_tracker):
        with pytest.raises(NotFoundError):
            await mission_tracker.record_event(404, "match_won", 1)

    async def test_list_active_missions(self, database, mission_tracker):
        await mission_tracker.create_mission("Win 3", "match_won", 3)
        await mission_tracker.create_mission("Play 5", "match_played", 5)

        missions = await mission_tracker.list_active_missions("match_played")

        assert [m["title"] for m in missions] == ["Play 5"]


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestClubMissions:
    """Test club-scoped missions."""

    async def test_aggregate_completion_pays_once(
        self, make_character, make_club, mission_tracker, character_service
    ):
        # Arrange
        alpha = await make_character("Alpha")
        beta = await make_character("Beta")
        club = await make_club("Lions", alpha["id"], beta["id"])
        mission = await mission_tracker.create_mission(
            "Club wins", "match_won", 5, scope="club", club_id=club["id"]
        )

        # Act
        first = await mission_tracker.record_event(alpha["id"], "match_won", 3)
        second = await mission_tracker.record_event(beta["id"], "match_won", 3)

        # Assert
        assert first[0].aggregate_value == 3
        assert first[0].completed is False
        assert second[0].aggregate_value == 5
        assert second[0].completed is True
        assert [s.event_id for s in second[0].settlements] == [
            club_mission_event_id(mission["id"], club["id"])
        ]

        triggering = await character_service.get_character(beta["id"])
        other = await character_service.get_character(alpha["id"])
        assert triggering["experience"] == 100
        assert other["experience"] == 0

        status = await mission_tracker.get_club_mission_status(mission["id"])
        assert status["status"] == "completed"
        assert sorted(m["progress_value"] for m in status["members"]) == [3, 3]

    async def test_completed_club_mission_stops(self, make_character, make_club, mission_tracker):
        alpha = await make_character("Alpha")
        club = await make_club("Lions", alpha["id"])
        await mission_tracker.create_mission("Club win", "match_won", 1, scope="club", club_id=club["id"])
        await mission_tracker.record_event(alpha["id"], "match_won", 1)

        assert await mission_tracker.record_event(alpha["id"], "match_won", 1) == []

    async def test_per_member_payout(self, make_character, make_club, mission_tracker, character_service):
        # Arrange
        alpha = await make_character("Alpha")
        beta = await make_character("Beta")
        club = await make_club("Lions", alpha["id"], beta["id"])
        mission = await mission_tracker.create_mission(
            "Club wins", "match_won", 4, scope="club", club_id=club["id"], per_member=True
        )
        await mission_tracker.record_event(alpha["id"], "match_won", 2)

        # Act
        outcomes = await mission_tracker.record_event(beta["id"], "match_won", 2)

        # Assert
        assert sorted(s.event_id for s in outcomes[0].settlements) == sorted(
            [mission_event_id(mission["id"], alpha["id"]), mission_event_id(mission["id"], beta["id"])]
        )
        for member in (alpha, beta):
            stored = await character_service.get_character(member["id"])
            assert stored["experience"] == 100

    async def test_non_member_does_not_advance(self, make_character, make_club, mission_tracker):
        alpha = await make_character("Alpha")
        outsider = await make_character("Outsider")
        club = await make_club("Lions", alpha["id"])
        await mission_tracker.create_mission("Club wins", "match_won", 5, scope="club", club_id=club["id"])

        assert await mission_tracker.record_event(outsider["id"], "match_won", 1) == []

    async def test_status_of_individual_mission_rejected(self, database, mission_tracker):
        mission = await mission_tracker.create_mission("Win 3", "match_won", 3)

        with pytest.raises(InvalidStateError):
            await mission_tracker.get_club_mission_status(mission["id"])

    async def test_club_mission_requires_club(self, database, mission_tracker):
        with pytest.raises(ValidationError):
            await mission_tracker.create_mission("Club wins", "match_won", 5, scope="club")

    async def test_club_mission_unknown_club(self, database, mission_tracker):
        with pytest.raises(NotFoundError):
            await mission_tracker.create_mission("Club wins", "match_won", 5, scope="club", club_id=77)

    async def test_club_payout_without_club_rolls_back(
        self, make_character, make_club, mission_tracker, mocker
    ):
        # Arrange
        alpha = await make_character("Alpha")
        club = await make_club("Lions", alpha["id"])
        mission = await mission_tracker.create_mission(
            "Club win", "match_won", 1, scope="club", club_id=club["id"]
        )
        real_find = mission_tracker._missions.find_applicable

        async def detached_from_club(session, *args, **kwargs):
            missions = await real_find(session, *args, **kwargs)
            for found in missions:
                found.club_id = None
            return missions

        mocker.patch.object(mission_tracker._missions, "find_applicable", side_effect=detached_from_club)

        # Act / Assert
        with pytest.raises(InvalidStateError):
            await mission_tracker.record_event(alpha["id"], "match_won", 1)

        status = await mission_tracker.get_club_mission_status(mission["id"])
        assert status["status"] == "active"
        assert status["club_id"] == club["id"]
        assert status["members"] == []
