"""
Integration Tests for Club Membership and Contributions
=======================================================

Test Coverage
-------------
- Club creation, joining, leaving (one club per character)
- Role changes and member listing
- Lifetime totals after a member leaves
- Contribution counters (member and club, weekly and lifetime)
- Weekly reset preserving lifetime totals
- Weekly ranking order and tie-break
"""

import pytest
import pytest_asyncio

from src.modules.shared.exceptions import ConflictError, NotFoundError, ValidationError


@pytest_asyncio.fixture
async def lions(make_character, membership_service):
    """Club "Lions" with founder Alpha (admin) and members Beta and Gamma."""
    alpha = await make_character("Alpha")
    beta = await make_character("Beta")
    gamma = await make_character("Gamma")
    club = await membership_service.create_club("Lions", founder_character_id=alpha["id"])
    await membership_service.join_club(club["id"], beta["id"])
    await membership_service.join_club(club["id"], gamma["id"])
    return {"club": club, "alpha": alpha, "beta": beta, "gamma": gamma}


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestMembership:
    """Test joining and leaving clubs."""

    async def test_founder_joins_as_admin(self, make_character, membership_service, contribution_aggregator):
        # Arrange
        founder = await make_character("Founder")

        # Act
        club = await membership_service.create_club("Lions", founder_character_id=founder["id"])

        # Assert
        assert club["member_count"] == 1
        ranking = await contribution_aggregator.weekly_ranking(club["id"])
        assert ranking[0]["role"] == "admin"

    async def test_member_count_tracks_joins(self, recorder, lions, membership_service):
        club = await membership_service.get_club(lions["club"]["id"])

        assert club["member_count"] == 3
        assert len(recorder.named("club.member_joined")) == 2

    async def test_one_club_per_character(self, lions, membership_service):
        other = await membership_service.create_club("Tigers")

        with pytest.raises(ConflictError):
            await membership_service.join_club(other["id"], lions["beta"]["id"])

    async def test_duplicate_club_name(self, database, membership_service):
        await membership_service.create_club("Lions")

        with pytest.raises(ConflictError):
            await membership_service.create_club("lions")

    async def test_join_unknown_club(self, make_character, membership_service):
        hero = await make_character("Hero")

        with pytest.raises(NotFoundError):
            await membership_service.join_club(99, hero["id"])

    async def test_join_unknown_character(self, database, membership_service):
        club = await membership_service.create_club("Lions")

        with pytest.raises(NotFoundError):
            await membership_service.join_club(club["id"], 99)

    async def test_leave_keeps_lifetime_total(self, lions, membership_service, contribution_aggregator):
        # Arrange
        club_id = lions["club"]["id"]
        await contribution_aggregator.add_contribution(club_id, lions["beta"]["id"], 40)
        await contribution_aggregator.add_contribution(club_id, lions["gamma"]["id"], 10)

        # Act
        left = await membership_service.leave_club(club_id, lions["beta"]["id"])

        # Assert
        assert left["total_contribution"] == 40
        club = await membership_service.get_club(club_id)
        assert club["member_count"] == 2
        assert club["weekly_contribution"] == 10
        assert club["total_contribution"] == 50

        # The club keeps the departed member's share; member sums do not.
        totals = await contribution_aggregator.club_totals(club_id)
        assert totals == {"club_id": club_id, "weekly": 10, "total": 10, "members": 2}

    async def test_update_role_promotes_member(self, lions, membership_service, recorder):
        # Arrange
        club_id = lions["club"]["id"]

        # Act
        updated = await membership_service.update_role(club_id, lions["beta"]["id"], "Admin")

        # Assert
        assert updated["role"] == "admin"
        admins = await membership_service.list_members(club_id, role="admin")
        assert [m["character_id"] for m in admins] == [lions["alpha"]["id"], lions["beta"]["id"]]
        assert recorder.named("club.member_role_changed") == [
            {
                "club_id": club_id,
                "character_id": lions["beta"]["id"],
                "old_role": "member",
                "new_role": "admin",
            }
        ]

    async def test_update_role_unchanged_emits_nothing(self, lions, membership_service, recorder):
        updated = await membership_service.update_role(
            lions["club"]["id"], lions["gamma"]["id"], "member"
        )

        assert updated["role"] == "member"
        assert recorder.named("club.member_role_changed") == []

    async def test_update_role_unknown_role(self, lions, membership_service):
        with pytest.raises(ValidationError):
            await membership_service.update_role(lions["club"]["id"], lions["beta"]["id"], "owner")

    async def test_update_role_non_member(self, lions, membership_service):
        tigers = await membership_service.create_club("Tigers")

        with pytest.raises(NotFoundError):
            await membership_service.update_role(tigers["id"], lions["beta"]["id"], "admin")

    async def test_list_members_in_join_order(self, lions, membership_service):
        members = await membership_service.list_members(lions["club"]["id"])

        assert [m["character_id"] for m in members] == [
            lions["alpha"]["id"],
            lions["beta"]["id"],
            lions["gamma"]["id"],
        ]

    async def test_list_members_unknown_club(self, database, membership_service):
        with pytest.raises(NotFoundError):
            await membership_service.list_members(99)

    async def test_leave_then_join_elsewhere(self, lions, membership_service):
        tigers = await membership_service.create_club("Tigers")
        await membership_service.leave_club(lions["club"]["id"], lions["gamma"]["id"])

        membership = await membership_service.join_club(tigers["id"], lions["gamma"]["id"])

        assert membership["club_id"] == tigers["id"]

    async def test_leave_without_membership(self, lions, membership_service):
        tigers = await membership_service.create_club("Tigers")

        with pytest.raises(NotFoundError):
            await membership_service.leave_club(tigers["id"], lions["alpha"]["id"])


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestContributions:
    """Test contribution counters."""

    async def test_contribution_updates_member_and_club(
        self, lions, contribution_aggregator, membership_service, recorder
    ):
        # Arrange
        club_id = lions["club"]["id"]

        # Act
        record = await contribution_aggregator.add_contribution(club_id, lions["beta"]["id"], 25)
        await contribution_aggregator.add_contribution(club_id, lions["beta"]["id"], 15)

        # Assert
        assert record["weekly_contribution"] == 25
        assert record["last_contribution_date"] is not None
        club = await membership_service.get_club(club_id)
        assert (club["weekly_contribution"], club["total_contribution"]) == (40, 40)
        assert len(recorder.named("club.contribution_added")) == 2

    @pytest.mark.parametrize("amount", [0, -5])
    async def test_non_positive_amount_rejected(self, lions, contribution_aggregator, amount):
        with pytest.raises(ValidationError):
            await contribution_aggregator.add_contribution(lions["club"]["id"], lions["beta"]["id"], amount)

    async def test_non_member_rejected(self, lions, make_character, contribution_aggregator):
        outsider = await make_character("Outsider")

        with pytest.raises(NotFoundError):
            await contribution_aggregator.add_contribution(lions["club"]["id"], outsider["id"], 10)

    async def test_weekly_reset_preserves_totals(
        self, lions, contribution_aggregator, membership_service, recorder
    ):
        # Arrange
        club_id = lions["club"]["id"]
        await contribution_aggregator.add_contribution(club_id, lions["alpha"]["id"], 50)
        await contribution_aggregator.add_contribution(club_id, lions["beta"]["id"], 30)

        # Act
        reset = await contribution_aggregator.reset_weekly_contributions(club_id)

        # Assert
        assert reset == 3
        totals = await contribution_aggregator.club_totals(club_id)
        assert totals == {"club_id": club_id, "weekly": 0, "total": 80, "members": 3}
        club = await membership_service.get_club(club_id)
        assert (club["weekly_contribution"], club["total_contribution"]) == (0, 80)
        assert recorder.named("club.weekly_reset")[0]["members_reset"] == 3

    async def test_reset_all_clubs(self, lions, make_character, membership_service, contribution_aggregator):
        delta = await make_character("Delta")
        tigers = await membership_service.create_club("Tigers", founder_character_id=delta["id"])
        await contribution_aggregator.add_contribution(tigers["id"], delta["id"], 5)
        await contribution_aggregator.add_contribution(lions["club"]["id"], lions["alpha"]["id"], 5)

        reset = await contribution_aggregator.reset_weekly_contributions()

        assert reset == 4
        assert (await contribution_aggregator.club_totals(tigers["id"]))["weekly"] == 0
        assert (await contribution_aggregator.club_totals(tigers["id"]))["total"] == 5

    async def test_contributions_after_reset_accumulate(self, lions, contribution_aggregator):
        club_id = lions["club"]["id"]
        await contribution_aggregator.add_contribution(club_id, lions["alpha"]["id"], 50)
        await contribution_aggregator.reset_weekly_contributions(club_id)

        record = await contribution_aggregator.add_contribution(club_id, lions["alpha"]["id"], 7)

        assert record["weekly_contribution"] == 7
        assert record["total_contribution"] == 57


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestWeeklyRanking:
    """Test ranking order."""

    async def test_ranked_by_weekly_then_earliest(self, lions, contribution_aggregator):
        # Arrange
        club_id = lions["club"]["id"]
        await contribution_aggregator.add_contribution(club_id, lions["gamma"]["id"], 40)
        await contribution_aggregator.add_contribution(club_id, lions["beta"]["id"], 40)
        await contribution_aggregator.add_contribution(club_id, lions["alpha"]["id"], 10)

        # Act
        ranking = await contribution_aggregator.weekly_ranking(club_id)

        # Assert
        assert [row["nickname"] for row in ranking] == ["Gamma", "Beta", "Alpha"]
        assert [row["rank"] for row in ranking] == [1, 2, 3]

    async def test_non_contributors_last(self, lions, contribution_aggregator):
        club_id = lions["club"]["id"]
        await contribution_aggregator.add_contribution(club_id, lions["beta"]["id"], 1)

        ranking = await contribution_aggregator.weekly_ranking(club_id)

        assert ranking[0]["nickname"] == "Beta"
        assert [row["nickname"] for row in ranking[1:]] == ["Alpha", "Gamma"]

    async def test_limit(self, lions, contribution_aggregator, config_manager):
        config_manager.set_override("clubs.ranking_limit", 2)

        ranking = await contribution_aggregator.weekly_ranking(lions["club"]["id"])

        assert len(ranking) == 2

    async def test_unknown_club(self, database, contribution_aggregator):
        with pytest.raises(NotFoundError):
            await contribution_aggregator.weekly_ranking(42)
