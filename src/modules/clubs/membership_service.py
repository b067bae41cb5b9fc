"""
Club membership: creation, joining and leaving.

A character belongs to at most one club. ``member_count`` is kept in step
with SQL-side increments. Leaving removes the member's weekly contribution
from the club's weekly counter; the club's lifetime total keeps it.
Permission checks for role changes belong to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.service import DatabaseService
from src.core.logging.logger import LogContext, get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import Character, Club, ClubMembership
from src.database.models.enums import ClubRole
from src.modules.clubs.repository import (
    ClubMembershipRepository,
    ClubRepository,
    membership_record,
)
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ConflictError, NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


def club_record(club: Club) -> Dict[str, Any]:
    return {
        "id": club.id,
        "name": club.name,
        "description": club.description,
        "member_count": club.member_count,
        "weekly_contribution": club.weekly_contribution,
        "total_contribution": club.total_contribution,
    }


class ClubMembershipService(BaseService):
    """
    Public Methods
    --------------
    - create_club() -> New club, optionally with its founder as admin
    - join_club() -> Add a character to a club
    - leave_club() -> Remove a character from its club
    - update_role() -> Promote or demote a member
    - get_club() -> Club record
    - list_members() -> Memberships, optionally of one role
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
        self._characters: BaseRepository[Character] = BaseRepository(
            Character, get_logger(f"{__name__}.CharacterRepository")
        )

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def create_club(
        self,
        name: str,
        founder_character_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a club. When a founder is given they join as admin in the
        same transaction.

        Raises:
            ValidationError: Bad name
            ConflictError: Name taken, or the founder is already in a club
            NotFoundError: Founder missing
        """
        name = InputValidator.validate_string(
            name,
            "name",
            min_length=self.get_config_int("clubs.name.min_length", 3),
            max_length=self.get_config_int("clubs.name.max_length", 48),
        )
        if founder_character_id is not None:
            founder_character_id = InputValidator.validate_entity_id(
                founder_character_id, "founder_character_id"
            )

        try:
            async with DatabaseService.get_transaction() as session:
                if await self._clubs.find_by_name(session, name) is not None:
                    raise ConflictError("Club", f"name '{name}' is already taken")

                club = self._clubs.add(
                    session,
                    Club(
                        name=name,
                        description=description,
                        member_count=0,
                        weekly_contribution=0,
                        total_contribution=0,
                    ),
                )
                await self._clubs.flush(session)

                if founder_character_id is not None:
                    await self._add_member(session, club.id, founder_character_id, ClubRole.ADMIN)
                    await self._clubs.refresh(session, club)

                record = club_record(club)
        except IntegrityError as exc:
            raise ConflictError("Club", f"name '{name}' is already taken") from exc

        self.log.info(f"Club created: {name}", extra={"club_id": record["id"]})
        await self.emit_event(
            "club.created",
            {"club_id": record["id"], "name": name, "founder_character_id": founder_character_id},
        )
        return record

    async def join_club(
        self,
        club_id: int,
        character_id: int,
        role: str = ClubRole.MEMBER.value,
    ) -> Dict[str, Any]:
        """
        Add a character to a club.

        Raises:
            NotFoundError: Club or character missing
            ConflictError: Character already belongs to a club
        """
        club_id = InputValidator.validate_entity_id(club_id, "club_id")
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        role = InputValidator.validate_choice(role, "role", [r.value for r in ClubRole])

        with LogContext(club_id=club_id, character_id=character_id, operation="join_club"):
            try:
                async with DatabaseService.get_transaction() as session:
                    if await self._clubs.get(session, club_id) is None:
                        raise NotFoundError("Club", club_id)
                    membership = await self._add_member(session, club_id, character_id, ClubRole(role))
                    record = membership_record(membership)
            except IntegrityError as exc:
                raise ConflictError("ClubMembership", "character already belongs to a club") from exc

            self.log.info("Club member joined", extra={"role": role})
            await self.emit_event(
                "club.member_joined",
                {"club_id": club_id, "character_id": character_id, "role": role},
            )
            return record

    async def leave_club(self, club_id: int, character_id: int) -> Dict[str, Any]:
        """
        Remove a character from a club.

        Returns:
            The removed membership's final record

        Raises:
            NotFoundError: Membership missing
        """
        club_id = InputValidator.validate_entity_id(club_id, "club_id")
        character_id = InputValidator.validate_entity_id(character_id, "character_id")

        with LogContext(club_id=club_id, character_id=character_id, operation="leave_club"):
            async with DatabaseService.get_transaction() as session:
                membership = await self._memberships.find_membership(
                    session, club_id, character_id, for_update=True
                )
                if membership is None:
                    raise NotFoundError("ClubMembership", f"{club_id}:{character_id}")

                record = membership_record(membership)
                await self._clubs.adjust_member_count(
                    session, club_id, -1, weekly_delta=-membership.weekly_contribution
                )
                await self._memberships.delete(session, membership)

            self.log.info("Club member left")
            await self.emit_event(
                "club.member_left",
                {
                    "club_id": club_id,
                    "character_id": character_id,
                    "total_contribution": record["total_contribution"],
                },
            )
            return record

    async def update_role(self, club_id: int, character_id: int, role: str) -> Dict[str, Any]:
        """
        Change a member's role.

        Raises:
            ValidationError: Unknown role
            NotFoundError: Membership missing
        """
        club_id = InputValidator.validate_entity_id(club_id, "club_id")
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        role = InputValidator.validate_choice(role, "role", [r.value for r in ClubRole])

        with LogContext(club_id=club_id, character_id=character_id, operation="update_role"):
            async with DatabaseService.get_transaction() as session:
                membership = await self._memberships.find_membership(
                    session, club_id, character_id, for_update=True
                )
                if membership is None:
                    raise NotFoundError("ClubMembership", f"{club_id}:{character_id}")

                old_role = membership.role
                membership.role = role
                record = membership_record(membership)

            if old_role != role:
                self.log.info(f"Club role changed: {old_role} -> {role}")
                await self.emit_event(
                    "club.member_role_changed",
                    {
                        "club_id": club_id,
                        "character_id": character_id,
                        "old_role": old_role,
                        "new_role": role,
                    },
                )
            return record

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_club(self, club_id: int) -> Dict[str, Any]:
        club_id = InputValidator.validate_entity_id(club_id, "club_id")
        async with DatabaseService.get_session() as session:
            club = await self._clubs.get(session, club_id)
            if club is None:
                raise NotFoundError("Club", club_id)
            return club_record(club)

    async def list_members(self, club_id: int, role: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Club memberships in join order, optionally only those with ``role``.

        Raises:
            ValidationError: Unknown role
            NotFoundError: Club missing
        """
        club_id = InputValidator.validate_entity_id(club_id, "club_id")
        conditions = [ClubMembership.club_id == club_id]
        if role is not None:
            role = InputValidator.validate_choice(role, "role", [r.value for r in ClubRole])
            conditions.append(ClubMembership.role == role)

        async with DatabaseService.get_session() as session:
            if await self._clubs.get(session, club_id) is None:
                raise NotFoundError("Club", club_id)
            memberships = await self._memberships.find_many_where(
                session, *conditions, order_by=[ClubMembership.id]
            )
            return [membership_record(m) for m in memberships]

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _add_member(
        self, session: AsyncSession, club_id: int, character_id: int, role: ClubRole
    ) -> ClubMembership:
        if await self._characters.get(session, character_id) is None:
            raise NotFoundError("Character", character_id)
        if await self._memberships.find_by_character(session, character_id) is not None:
            raise ConflictError("ClubMembership", "character already belongs to a club")

        membership = self._memberships.add(
            session,
            ClubMembership(
                club_id=club_id,
                character_id=character_id,
                role=role.value,
                weekly_contribution=0,
                total_contribution=0,
            ),
        )
        await self._memberships.flush(session)
        await self._clubs.adjust_member_count(session, club_id, 1)
        return membership
