"""
Match Service
=============

Purpose
-------
Bot matches: opponent selection, match lifecycle and settlement of the
outcome reward.

Domain
------
- Opponents are bot characters within ``match.bot_level_window`` levels of
  the target; with none in range the first bot is used.
- ``finish_match`` simulates, stores the score, settles the reward under
  ``match:{match_id}`` and records mission progress (``match_played``,
  ``match_won``) in one transaction. A failed attempt leaves the match in
  progress, so a retry finishes it with nothing lost or paid twice.
- History lists finished matches a character took part in, newest first.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.core.logging.logger import LogContext, get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import Character, Match
from src.database.models.enums import MatchStatus, SettlementSource
from src.domain.match_simulator import MatchOutcomeSimulator, RandomSource
from src.domain.models.settlement import OutcomeKind, SettlementResult
from src.modules.character.repository import CharacterRepository
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
    from src.modules.missions.tracker import MissionProgressTracker
    from src.modules.progression.settlement_service import SettlementEngine


def match_event_id(match_id: int) -> str:
    return f"match:{match_id}"


def match_record(match: Match, settlement: Optional[SettlementResult] = None) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "id": match.id,
        "character_id": match.character_id,
        "opponent_character_id": match.opponent_character_id,
        "status": match.status,
        "actor_score": match.actor_score,
        "opponent_score": match.opponent_score,
        "winner_id": match.winner_id,
        "event_id": match.event_id,
        "finished_at": match.finished_at,
    }
    if settlement is not None:
        record["settlement"] = settlement.to_dict()
    return record


class MatchService(BaseService):
    """
    Bot match lifecycle.

    Public Methods
    --------------
    - select_bot_opponent() -> Bot near a target level
    - start_match() -> New in-progress match
    - finish_match() -> Simulate, store and settle
    - play_bot_match() -> Select, start and finish in one call
    - get_match() -> Match record
    - match_history() -> Finished matches of one character
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        settlement_engine: SettlementEngine,
        mission_tracker: MissionProgressTracker,
        simulator: Optional[MatchOutcomeSimulator] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.settlement = settlement_engine
        self.missions = mission_tracker
        self.simulator = simulator or MatchOutcomeSimulator.from_config(config_manager)
        self._characters = CharacterRepository(
            Character, get_logger(f"{__name__}.CharacterRepository")
        )
        self._matches: BaseRepository[Match] = BaseRepository(
            Match, get_logger(f"{__name__}.MatchRepository")
        )

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def start_match(self, character_id: int, opponent_id: int) -> Dict[str, Any]:
        """
        Open a match between a character and an opponent.

        Raises:
            ValidationError: A character cannot play itself
            NotFoundError: Either character missing
        """
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        opponent_id = InputValidator.validate_entity_id(opponent_id, "opponent_id")
        if character_id == opponent_id:
            raise ValidationError("opponent_id", "a character cannot play against itself")

        async with DatabaseService.get_transaction() as session:
            for cid in (character_id, opponent_id):
                if await self._characters.get(session, cid) is None:
                    raise NotFoundError("Character", cid)

            match = self._matches.add(
                session,
                Match(
                    character_id=character_id,
                    opponent_character_id=opponent_id,
                    status=MatchStatus.IN_PROGRESS.value,
                ),
            )
            await self._matches.flush(session)
            record = match_record(match)

        self.log.info(
            f"Match started: {character_id} vs {opponent_id}",
            extra={"match_id": record["id"], "character_id": character_id},
        )
        return record

    async def finish_match(
        self, match_id: int, rng: Optional[RandomSource] = None
    ) -> Dict[str, Any]:
        """
        Simulate an in-progress match and settle its reward.

        Args:
            match_id: Match to finish
            rng: Randomness source (defaults to the ``random`` module)

        Returns:
            The finished match record with its ``settlement``

        Raises:
            NotFoundError: Match or a participant missing
            InvalidStateError: Match already finished
            StorageError: Persistence failure; the match stays in progress
        """
        match_id = InputValidator.validate_entity_id(match_id, "match_id")
        rng = rng if rng is not None else random
        event_id = match_event_id(match_id)

        with LogContext(event_id=event_id, operation="finish_match"):
            try:
                async with DatabaseService.get_transaction() as session:
                    match = await self._matches.get_for_update(session, match_id)
                    if match is None:
                        raise NotFoundError("Match", match_id)
                    if match.status == MatchStatus.FINISHED.value:
                        raise InvalidStateError("finish_match", f"match {match_id} is already finished")

                    actor = await self._characters.get(session, match.character_id)
                    opponent = await self._characters.get(session, match.opponent_character_id)
                    if actor is None:
                        raise NotFoundError("Character", match.character_id)
                    if opponent is None:
                        raise NotFoundError("Character", match.opponent_character_id)

                    result = self.simulator.simulate(
                        actor.stats(),
                        opponent.stats(),
                        actor.level,
                        opponent.level,
                        rng,
                        actor_id=actor.id,
                        opponent_id=opponent.id,
                    )
                    kind = OutcomeKind.parse(result.outcome_kind)
                    grant = self.settlement.reward_policy.reward_for(kind, actor.level, opponent.level)

                    settlement = await self.settlement.apply(
                        session,
                        actor.id,
                        event_id,
                        grant.exp,
                        grant.coins,
                        source=SettlementSource.MATCH,
                    )

                    match.actor_score = result.actor_score
                    match.opponent_score = result.opponent_score
                    match.winner_id = result.winner_id
                    match.status = MatchStatus.FINISHED.value
                    match.event_id = event_id
                    match.finished_at = utc_now()

                    mission_outcomes = await self.missions.apply_event(session, actor.id, "match_played", 1)
                    if kind is OutcomeKind.WIN:
                        mission_outcomes += await self.missions.apply_event(session, actor.id, "match_won", 1)
                    record = match_record(match, settlement)
            except IntegrityError as exc:
                if await self._is_finished(match_id):
                    raise InvalidStateError("finish_match", f"match {match_id} is already finished") from exc
                raise StorageError("finish_match", exc) from exc

            self.log.info(
                f"Match finished: {result.actor_score}-{result.opponent_score} ({kind.value})",
                extra={
                    "match_id": match_id,
                    "character_id": record["character_id"],
                    "advantage": result.advantage,
                    "exp": grant.exp,
                    "coins": grant.coins,
                },
            )

            await self.settlement.publish_settlement(settlement)
            await self.emit_event(
                "match.finished",
                {
                    "match_id": match_id,
                    "character_id": record["character_id"],
                    "opponent_character_id": record["opponent_character_id"],
                    "actor_score": result.actor_score,
                    "opponent_score": result.opponent_score,
                    "winner_id": result.winner_id,
                    "outcome": kind.value,
                },
            )
            await self.missions.publish_outcomes(mission_outcomes)
            return record

    async def play_bot_match(
        self, character_id: int, rng: Optional[RandomSource] = None
    ) -> Dict[str, Any]:
        """Pick a bot near the character's level, then start and finish a match."""
        rng = rng if rng is not None else random
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        async with DatabaseService.get_session() as session:
            character = await self._characters.get(session, character_id)
            if character is None:
                raise NotFoundError("Character", character_id)
            level = character.level

        opponent = await self.select_bot_opponent(level, rng, exclude_id=character_id)
        started = await self.start_match(character_id, opponent["id"])
        return await self.finish_match(started["id"], rng)

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def select_bot_opponent(
        self,
        target_level: int,
        rng: Optional[RandomSource] = None,
        exclude_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Choose a bot within ``match.bot_level_window`` levels of the target.

        Raises:
            NotFoundError: No bots exist
        """
        target_level = InputValidator.validate_positive_integer(target_level, "target_level")
        rng = rng if rng is not None else random
        window = self.get_config_int("match.bot_level_window", 2)

        async with DatabaseService.get_session() as session:
            bots = [
                bot
                for bot in await self._characters.find_bots(session)
                if bot.id != exclude_id
            ]
            if not bots:
                raise NotFoundError("Character", "bot opponent")

            in_range = [bot for bot in bots if abs(bot.level - target_level) <= window]
            chosen = rng.choice(in_range) if in_range else bots[0]

            self.log.debug(
                "Bot opponent selected",
                extra={
                    "target_level": target_level,
                    "candidates": len(in_range),
                    "opponent_id": chosen.id,
                },
            )
            return {"id": chosen.id, "nickname": chosen.nickname, "level": chosen.level}

    async def get_match(self, match_id: int) -> Dict[str, Any]:
        match_id = InputValidator.validate_entity_id(match_id, "match_id")
        async with DatabaseService.get_session() as session:
            match = await self._matches.get(session, match_id)
            if match is None:
                raise NotFoundError("Match", match_id)
            return match_record(match)

    async def match_history(
        self, character_id: int, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Finished matches the character played on either side, newest first.

        Args:
            character_id: Character whose history to list
            limit: Maximum rows (defaults to ``match.history_limit``)

        Raises:
            NotFoundError: Character missing
        """
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        if limit is None:
            limit = self.get_config_int("match.history_limit", 20)
        limit = InputValidator.validate_positive_integer(limit, "limit")

        async with DatabaseService.get_session() as session:
            if await self._characters.get(session, character_id) is None:
                raise NotFoundError("Character", character_id)
            matches = await self._matches.find_many_where(
                session,
                Match.status == MatchStatus.FINISHED.value,
                or_(
                    Match.character_id == character_id,
                    Match.opponent_character_id == character_id,
                ),
                order_by=[Match.finished_at.desc(), Match.id.desc()],
                limit=limit,
            )
            return [match_record(match) for match in matches]

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _is_finished(self, match_id: int) -> bool:
        async with DatabaseService.get_session() as session:
            match = await self._matches.get(session, match_id)
            return match is not None and match.status == MatchStatus.FINISHED.value
