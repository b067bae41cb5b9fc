"""
Club Contribution Aggregator
============================

Purpose
-------
Maintain per-member and per-club contribution counters for two windows:
the current week and the club's lifetime.

Domain
------
- ``add_contribution`` raises member weekly + total and club weekly + total
  in one transaction with SQL-side increments.
- ``reset_weekly_contributions`` zeroes weekly counters with one bulk UPDATE
  and never touches lifetime totals. Setting to zero (not subtracting) makes
  it safe to run while contributions are still arriving.
- Ranking is a read: weekly desc, ties to the earliest last contribution.

Role checks (who may trigger a reset) belong to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.core.logging.logger import LogContext, get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import Club, ClubMembership
from src.modules.clubs.repository import (
    ClubMembershipRepository,
    ClubRepository,
    membership_record,
)
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


class ClubContributionAggregator(BaseService):
    """
    Weekly and lifetime club contribution counters.

    Public Methods
    --------------
    - add_contribution() -> Credit a member's contribution
    - reset_weekly_contributions() -> Zero weekly counters (one club or all)
    - weekly_ranking() -> Members ordered by weekly contribution
    - club_totals() -> Weekly and lifetime sums over members
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._clubs = ClubRepository(Club, get_logger(f"{__name__}.ClubRepository"))
        self._memberships = ClubMembershipRepository(
            ClubMembership, get_logger(f"{__name__}.ClubMembershipRepository")
        )

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def add_contribution(self, club_id: int, character_id: int, amount: int) -> Dict[str, Any]:
        """
        Credit ``amount`` to a member and to the club.

        Args:
            club_id: Club the member belongs to
            character_id: Contributing member
            amount: Positive contribution

        Returns:
            The member's record after the increment

        Raises:
            ValidationError: amount <= 0
            NotFoundError: Club or membership missing
        """
        club_id = InputValidator.validate_entity_id(club_id, "club_id")
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        amount = InputValidator.validate_integer(amount, "amount")
        if amount <= 0:
            raise ValidationError("amount", f"must be positive, got {amount}")

        with LogContext(club_id=club_id, character_id=character_id, operation="add_contribution"):
            async with DatabaseService.get_transaction() as session:
                if await self._clubs.get(session, club_id) is None:
                    raise NotFoundError("Club", club_id)
                membership = await self._memberships.find_membership(session, club_id, character_id)
                if membership is None:
                    raise NotFoundError("ClubMembership", f"{club_id}:{character_id}")

                now = utc_now()
                await self._memberships.increment_contribution(session, membership.id, amount, now)
                await self._clubs.increment_contribution(session, club_id, amount)
                await self._memberships.refresh(session, membership)
                record = membership_record(membership)

            self.log.info(
                f"Club contribution: +{amount}",
                extra={
                    "club_id": club_id,
                    "character_id": character_id,
                    "amount": amount,
                    "weekly_contribution": record["weekly_contribution"],
                },
            )
            await self.emit_event(
                "club.contribution_added",
                {"club_id": club_id, "character_id": character_id, "amount": amount},
            )
            return record

    async def reset_weekly_contributions(self, club_id: Optional[int] = None) -> int:
        """
        Zero weekly counters for one club, or for every club.

        Returns:
            Number of membership rows reset
        """
        if club_id is not None:
            club_id = InputValidator.validate_entity_id(club_id, "club_id")

        async with DatabaseService.get_transaction() as session:
            if club_id is not None and await self._clubs.get(session, club_id) is None:
                raise NotFoundError("Club", club_id)
            members_reset = await self._memberships.reset_weekly(session, club_id)
            clubs_reset = await self._clubs.reset_weekly(session, club_id)

        self.log.info(
            "Weekly contributions reset",
            extra={"club_id": club_id, "members_reset": members_reset, "clubs_reset": clubs_reset},
        )
        await self.emit_event(
            "club.weekly_reset",
            {"club_id": club_id, "members_reset": members_reset, "clubs_reset": clubs_reset},
        )
        return members_reset

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def weekly_ranking(self, club_id: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Members ordered by weekly contribution (desc), earliest contributor
        first on ties.

        Args:
            club_id: Club to rank
            limit: Max rows (defaults to ``clubs.ranking_limit``)
        """
        club_id = InputValidator.validate_entity_id(club_id, "club_id")
        if limit is None:
            limit = self.get_config_int("clubs.ranking_limit", 10)
        limit = InputValidator.validate_positive_integer(limit, "limit")

        async with DatabaseService.get_session() as session:
            if await self._clubs.get(session, club_id) is None:
                raise NotFoundError("Club", club_id)
            rows = await self._memberships.weekly_ranking(session, club_id, limit)
            return [
                membership_record(membership, rank=rank, nickname=nickname)
                for rank, (membership, nickname) in enumerate(rows, start=1)
            ]

    async def club_totals(self, club_id: int) -> Dict[str, int]:
        """
        Contribution sums over the club's current members.

        Departed members are not counted; the club record's
        ``total_contribution`` is the lifetime figure that keeps them.
        """
        club_id = InputValidator.validate_entity_id(club_id, "club_id")
        async with DatabaseService.get_session() as session:
            if await self._clubs.get(session, club_id) is None:
                raise NotFoundError("Club", club_id)
            weekly, total, members = await self._memberships.totals(session, club_id)
            return {"club_id": club_id, "weekly": weekly, "total": total, "members": members}
