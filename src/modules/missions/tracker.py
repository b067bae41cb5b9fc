"""
Mission Progress Tracker
========================

Purpose
-------
Accumulate progress toward missions from qualifying gameplay events and pay
the reward exactly once when a mission completes.

Domain
------
- Individual missions: one MissionProgress per character, clamped to the
  target; completion pays ``mission:{mission_id}:{character_id}``.
- Club missions: each member's progress is clamped individually; the
  mission's ``current_value`` is the SQL sum over member rows. When the
  aggregate reaches the target the mission itself completes and pays once,
  ``mission:{mission_id}:club:{club_id}``, credited to the member whose event
  completed it. ``per_member`` missions instead pay every member with
  progress under their own ``mission:{mission_id}:{character_id}`` key.
- Missions past their deadline are not advanced.

Transactions
------------
Progress, completion and payout commit in one transaction via
``SettlementEngine.apply``; events are published after commit.
``apply_event`` runs inside a caller's transaction so a match result or a
training session and the progress it earns commit together; the caller
then hands the outcomes to ``publish_outcomes``.
``record_event`` carries no idempotency key of its own, so callers feed it
only from events that were themselves settled once (match results, training).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.core.logging.logger import LogContext, get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import Character, Club, ClubMembership, Mission, MissionProgress
from src.database.models.enums import MissionScope, MissionStatus, SettlementSource
from src.domain.models.settlement import SettlementResult
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    InvalidStateError,
    NotFoundError,
    StorageError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.progression.settlement_service import SettlementEngine


@dataclass(frozen=True)
class MissionOutcome:
    """
    What one ``record_event`` call did to one mission.

    Attributes
    ----------
    progress_value : int
        The character's clamped progress after this event.
    aggregate_value : Optional[int]
        Club missions only: sum over all members.
    completed : bool
        True only on the call that completed the mission for this
        character (individual) or for the club (club scope).
    settlements : tuple
        Rewards paid by this call.
    """

    mission_id: int
    character_id: int
    scope: str
    progress_value: int
    target_value: int
    aggregate_value: Optional[int] = None
    completed: bool = False
    settlements: Tuple[SettlementResult, ...] = field(default_factory=tuple)


def mission_event_id(mission_id: int, character_id: int) -> str:
    return f"mission:{mission_id}:{character_id}"


def club_mission_event_id(mission_id: int, club_id: int) -> str:
    return f"mission:{mission_id}:club:{club_id}"


# ============================================================================
# Repositories
# ============================================================================


class MissionRepository(BaseRepository[Mission]):
    async def find_applicable(
        self,
        session: AsyncSession,
        event_type: str,
        club_id: Optional[int],
        now: datetime,
    ) -> List[Mission]:
        """Active, unexpired missions of ``event_type`` the character can advance."""
        scope_filter = Mission.scope == MissionScope.INDIVIDUAL.value
        if club_id is not None:
            scope_filter = or_(
                scope_filter,
                and_(Mission.scope == MissionScope.CLUB.value, Mission.club_id == club_id),
            )
        return await self.find_many_where(
            session,
            Mission.status == MissionStatus.ACTIVE.value,
            Mission.mission_type == event_type,
            or_(Mission.deadline.is_(None), Mission.deadline > now),
            scope_filter,
            order_by=[Mission.id],
            for_update=True,
        )


class MissionProgressRepository(BaseRepository[MissionProgress]):
    async def find_for(
        self,
        session: AsyncSession,
        mission_id: int,
        character_id: int,
        *,
        for_update: bool = False,
    ) -> Optional[MissionProgress]:
        return await self.find_one_where(
            session,
            MissionProgress.mission_id == mission_id,
            MissionProgress.character_id == character_id,
            for_update=for_update,
        )

    async def aggregate(self, session: AsyncSession, mission_id: int) -> int:
        stmt = select(func.coalesce(func.sum(MissionProgress.progress_value), 0)).where(
            MissionProgress.mission_id == mission_id
        )
        return int((await session.execute(stmt)).scalar_one())


# ============================================================================
# MissionProgressTracker
# ============================================================================


class MissionProgressTracker(BaseService):
    """
    Mission progress and once-only mission rewards.

    Public Methods
    --------------
    - record_event() -> Advance matching missions for one character
    - apply_event() -> Same, inside the caller's transaction
    - publish_outcomes() -> Emit mission events once committed
    - create_mission() -> Define an individual or club mission
    - get_mission_progress() -> One character's progress on one mission
    - get_club_mission_status() -> Aggregate and per-member breakdown
    - list_active_missions() -> Active missions, optionally by event type
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        settlement_engine: SettlementEngine,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.settlement = settlement_engine
        self._missions = MissionRepository(Mission, get_logger(f"{__name__}.MissionRepository"))
        self._progress = MissionProgressRepository(
            MissionProgress, get_logger(f"{__name__}.MissionProgressRepository")
        )

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def record_event(
        self, character_id: int, event_type: str, magnitude: int = 1
    ) -> List[MissionOutcome]:
        """
        Advance every applicable active mission of ``event_type``.

        Args:
            character_id: Character the event happened to
            event_type: Event type missions listen to (e.g. ``match_won``)
            magnitude: Progress amount; 0 is a no-op

        Returns:
            One MissionOutcome per mission advanced

        Raises:
            ValidationError: Negative magnitude or malformed input
            NotFoundError: Character missing
            StorageError: Persistence failure
        """
        with LogContext(character_id=character_id, operation="record_event"):
            try:
                async with DatabaseService.get_transaction() as session:
                    outcomes = await self.apply_event(session, character_id, event_type, magnitude)
            except IntegrityError as exc:
                raise StorageError("record_event", exc) from exc

            await self.publish_outcomes(outcomes)
            return outcomes

    async def apply_event(
        self,
        session: AsyncSession,
        character_id: int,
        event_type: str,
        magnitude: int = 1,
    ) -> List[MissionOutcome]:
        """
        Advance missions inside an open transaction.

        Publishes nothing; pass the result to ``publish_outcomes`` after the
        caller commits.
        """
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        event_type = InputValidator.validate_string(event_type, "event_type", min_length=1, max_length=64)
        magnitude = InputValidator.validate_integer(magnitude, "magnitude")
        if magnitude < 0:
            raise ValidationError("magnitude", f"must be non-negative, got {magnitude}")
        if magnitude == 0:
            return []
        return await self._record(session, character_id, event_type, magnitude)

    async def publish_outcomes(self, outcomes: List[MissionOutcome]) -> None:
        for outcome in outcomes:
            await self.emit_event(
                "mission.progressed",
                {
                    "mission_id": outcome.mission_id,
                    "character_id": outcome.character_id,
                    "scope": outcome.scope,
                    "progress_value": outcome.progress_value,
                    "target_value": outcome.target_value,
                    "aggregate_value": outcome.aggregate_value,
                },
            )
            if outcome.completed:
                await self.emit_event(
                    "mission.completed",
                    {
                        "mission_id": outcome.mission_id,
                        "character_id": outcome.character_id,
                        "scope": outcome.scope,
                        "rewarded_event_ids": [s.event_id for s in outcome.settlements],
                    },
                )
            for settlement in outcome.settlements:
                await self.settlement.publish_settlement(settlement)

    async def create_mission(
        self,
        title: str,
        mission_type: str,
        target_value: int,
        reward_exp: Optional[int] = None,
        reward_coins: Optional[int] = None,
        reward_skill_points: Optional[int] = None,
        scope: str = MissionScope.INDIVIDUAL.value,
        club_id: Optional[int] = None,
        per_member: bool = False,
        deadline: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Define a mission. Rewards default to ``missions.default_reward_*``.

        Raises:
            ValidationError: Bad target/rewards, or scope/club mismatch
            NotFoundError: Club missing
        """
        title = InputValidator.validate_string(title, "title", min_length=1, max_length=120)
        mission_type = InputValidator.validate_string(mission_type, "mission_type", min_length=1, max_length=64)
        target_value = InputValidator.validate_positive_integer(target_value, "target_value")
        scope = InputValidator.validate_choice(scope, "scope", [s.value for s in MissionScope])

        if reward_exp is None:
            reward_exp = self.get_config_int("missions.default_reward_exp", 100)
        if reward_coins is None:
            reward_coins = self.get_config_int("missions.default_reward_coins", 200)
        if reward_skill_points is None:
            reward_skill_points = self.get_config_int("missions.default_reward_skill_points", 0)
        reward_exp = InputValidator.validate_non_negative_integer(reward_exp, "reward_exp")
        reward_coins = InputValidator.validate_non_negative_integer(reward_coins, "reward_coins")
        reward_skill_points = InputValidator.validate_non_negative_integer(
            reward_skill_points, "reward_skill_points"
        )

        if scope == MissionScope.CLUB.value:
            if club_id is None:
                raise ValidationError("club_id", "club missions need a club")
            club_id = InputValidator.validate_entity_id(club_id, "club_id")
        elif club_id is not None or per_member:
            raise ValidationError("scope", "club_id and per_member apply to club missions only")

        async with DatabaseService.get_transaction() as session:
            if club_id is not None and await session.get(Club, club_id) is None:
                raise NotFoundError("Club", club_id)

            mission = self._missions.add(
                session,
                Mission(
                    title=title,
                    mission_type=mission_type,
                    target_value=target_value,
                    reward_exp=reward_exp,
                    reward_coins=reward_coins,
                    reward_skill_points=reward_skill_points,
                    scope=scope,
                    club_id=club_id,
                    per_member=per_member,
                    status=MissionStatus.ACTIVE.value,
                    current_value=0,
                    deadline=deadline,
                ),
            )
            await self._missions.flush(session)
            record = self._mission_record(mission)

        self.log_operation("create_mission", mission_id=record["id"], scope=scope)
        return record

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_mission_progress(self, mission_id: int, character_id: int) -> Dict[str, Any]:
        """
        One character's progress on one mission (zero if never advanced).

        Raises:
            NotFoundError: Mission missing
        """
        mission_id = InputValidator.validate_entity_id(mission_id, "mission_id")
        character_id = InputValidator.validate_entity_id(character_id, "character_id")

        async with DatabaseService.get_session() as session:
            mission = await self._missions.get(session, mission_id)
            if mission is None:
                raise NotFoundError("Mission", mission_id)
            progress = await self._progress.find_for(session, mission_id, character_id)

            return {
                "mission_id": mission_id,
                "character_id": character_id,
                "progress_value": progress.progress_value if progress else 0,
                "target_value": mission.target_value,
                "completed_at": progress.completed_at if progress else None,
                "mission_status": mission.status,
                "aggregate_value": (
                    mission.current_value if mission.scope == MissionScope.CLUB.value else None
                ),
            }

    async def get_club_mission_status(self, mission_id: int) -> Dict[str, Any]:
        """
        Aggregate status of a club mission with each member's share.

        Raises:
            NotFoundError: Mission missing
            InvalidStateError: Mission is not club-scoped
        """
        mission_id = InputValidator.validate_entity_id(mission_id, "mission_id")

        async with DatabaseService.get_session() as session:
            mission = await self._missions.get(session, mission_id)
            if mission is None:
                raise NotFoundError("Mission", mission_id)
            if mission.scope != MissionScope.CLUB.value:
                raise InvalidStateError("club_mission_status", "mission is not club-scoped")

            stmt = (
                select(MissionProgress, Character.nickname)
                .join(Character, Character.id == MissionProgress.character_id)
                .where(MissionProgress.mission_id == mission_id)
                .order_by(MissionProgress.progress_value.desc(), MissionProgress.id)
            )
            rows = (await session.execute(stmt)).all()

            return {
                **self._mission_record(mission),
                "members": [
                    {
                        "character_id": progress.character_id,
                        "nickname": nickname,
                        "progress_value": progress.progress_value,
                    }
                    for progress, nickname in rows
                ],
            }

    async def list_active_missions(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        conditions = [Mission.status == MissionStatus.ACTIVE.value]
        if event_type is not None:
            conditions.append(Mission.mission_type == event_type)

        async with DatabaseService.get_session() as session:
            missions = await self._missions.find_many_where(
                session, *conditions, order_by=[Mission.id]
            )
            return [self._mission_record(m) for m in missions]

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _record(
        self,
        session: AsyncSession,
        character_id: int,
        event_type: str,
        magnitude: int,
    ) -> List[MissionOutcome]:
        if await session.get(Character, character_id) is None:
            raise NotFoundError("Character", character_id)

        membership = (
            await session.execute(
                select(ClubMembership.club_id).where(ClubMembership.character_id == character_id)
            )
        ).scalar_one_or_none()

        now = utc_now()
        missions = await self._missions.find_applicable(session, event_type, membership, now)
        outcomes: List[MissionOutcome] = []

        for mission in missions:
            progress = await self._progress.find_for(
                session, mission.id, character_id, for_update=True
            )
            if progress is None:
                progress = self._progress.add(
                    session,
                    MissionProgress(mission_id=mission.id, character_id=character_id, progress_value=0),
                )
                await self._progress.flush(session)

            if mission.scope == MissionScope.INDIVIDUAL.value:
                outcome = await self._advance_individual(session, mission, progress, magnitude, now)
            else:
                outcome = await self._advance_club(session, mission, progress, magnitude, now)
            if outcome is not None:
                outcomes.append(outcome)

        return outcomes

    async def _advance_individual(
        self,
        session: AsyncSession,
        mission: Mission,
        progress: MissionProgress,
        magnitude: int,
        now: datetime,
    ) -> Optional[MissionOutcome]:
        if progress.completed_at is not None:
            return None

        progress.progress_value = min(progress.progress_value + magnitude, mission.target_value)
        settlements: Tuple[SettlementResult, ...] = ()
        completed = False

        if progress.progress_value >= mission.target_value:
            progress.completed_at = now
            completed = True
            event_id = mission_event_id(mission.id, progress.character_id)
            settlements = (await self._pay(session, mission, progress.character_id, event_id),)

        return MissionOutcome(
            mission_id=mission.id,
            character_id=progress.character_id,
            scope=mission.scope,
            progress_value=progress.progress_value,
            target_value=mission.target_value,
            completed=completed,
            settlements=settlements,
        )

    async def _advance_club(
        self,
        session: AsyncSession,
        mission: Mission,
        progress: MissionProgress,
        magnitude: int,
        now: datetime,
    ) -> MissionOutcome:
        progress.progress_value = min(progress.progress_value + magnitude, mission.target_value)
        await self._progress.flush(session)

        aggregate = await self._progress.aggregate(session, mission.id)
        mission.current_value = min(aggregate, mission.target_value)
        settlements: List[SettlementResult] = []
        completed = False

        if aggregate >= mission.target_value and mission.status == MissionStatus.ACTIVE.value:
            completed = True
            mission.status = MissionStatus.COMPLETED.value
            mission.completed_at = now
            await session.execute(
                update(MissionProgress)
                .where(
                    MissionProgress.mission_id == mission.id,
                    MissionProgress.completed_at.is_(None),
                )
                .values(completed_at=now)
                .execution_options(synchronize_session=False)
            )

            if mission.per_member:
                contributors = await self._progress.find_many_where(
                    session,
                    MissionProgress.mission_id == mission.id,
                    MissionProgress.progress_value > 0,
                    order_by=[MissionProgress.character_id],
                )
                for row in contributors:
                    event_id = mission_event_id(mission.id, row.character_id)
                    settlements.append(await self._pay(session, mission, row.character_id, event_id))
            else:
                if mission.club_id is None:
                    raise InvalidStateError(
                        "club_mission_payout", f"club mission {mission.id} has no club"
                    )
                settlements.append(
                    await self._pay(
                        session,
                        mission,
                        progress.character_id,
                        club_mission_event_id(mission.id, mission.club_id),
                    )
                )

        return MissionOutcome(
            mission_id=mission.id,
            character_id=progress.character_id,
            scope=mission.scope,
            progress_value=progress.progress_value,
            target_value=mission.target_value,
            aggregate_value=mission.current_value,
            completed=completed,
            settlements=tuple(settlements),
        )

    async def _pay(
        self,
        session: AsyncSession,
        mission: Mission,
        character_id: int,
        event_id: str,
    ) -> SettlementResult:
        self.log.info(
            f"Mission {mission.id} completed; paying {event_id}",
            extra={"mission_id": mission.id, "character_id": character_id, "event_id": event_id},
        )
        return await self.settlement.apply(
            session,
            character_id,
            event_id,
            mission.reward_exp,
            mission.reward_coins,
            source=SettlementSource.MISSION,
            bonus_skill_points=mission.reward_skill_points,
        )

    @staticmethod
    def _mission_record(mission: Mission) -> Dict[str, Any]:
        return {
            "id": mission.id,
            "title": mission.title,
            "type": mission.mission_type,
            "target_value": mission.target_value,
            "reward_exp": mission.reward_exp,
            "reward_coins": mission.reward_coins,
            "reward_skill_points": mission.reward_skill_points,
            "scope": mission.scope,
            "per_member": mission.per_member,
            "club_id": mission.club_id,
            "status": mission.status,
            "current_value": mission.current_value,
            "deadline": mission.deadline,
            "completed_at": mission.completed_at,
        }
