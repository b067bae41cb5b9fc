"""
Character Service
=================

Purpose
-------
Character lifecycle: creation (character + wallet in one transaction),
training sessions, skill point allocation and the external character
record shape.

Domain
------
- A new character starts at level 1 with zero experience and zero skill
  points; its wallet address is ``<nickname lowercased, spaces removed>.lupi``
  and its balance ``characters.starting_balance``.
- Training credits ``progression.training.exp`` through the SettlementEngine
  under ``training:{character_id}:{session_key}`` so a retried session
  never pays twice. A first-time session advances missions of type
  ``progression.training.event_type`` in the same transaction.
- Allocation spends one skill point on one stat, under a row lock.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError

from src.core.database.service import DatabaseService
from src.core.logging.logger import LogContext, get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import STAT_COLUMNS, Character, Wallet
from src.database.models.enums import SettlementSource
from src.domain.models.base import DomainValidationError
from src.domain.models.character import StatProfile
from src.domain.models.settlement import SettlementResult
from src.modules.character.repository import CharacterRepository, WalletRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    ConflictError,
    NotFoundError,
    StorageError,
    validation_error_from,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.missions.tracker import MissionProgressTracker
    from src.modules.progression.settlement_service import SettlementEngine


def wallet_address_for(nickname: str, suffix: str = ".lupi") -> str:
    """
    Derive a wallet address from a nickname.

    Example:
        >>> wallet_address_for("Leo Messi")
        'leomessi.lupi'
    """
    return "".join(nickname.lower().split()) + suffix


def character_record(character: Character, wallet: Optional[Wallet]) -> Dict[str, Any]:
    """External character record shape, with the wallet balance attached."""
    return {
        "id": character.id,
        "user_id": character.user_id,
        "nickname": character.nickname,
        "position": character.position,
        "is_bot": character.is_bot,
        "experience": character.experience,
        "level": character.level,
        "available_skill_points": character.available_skill_points,
        "stats": character.stats(),
        "wallet": (
            {
                "character_id": wallet.character_id,
                "address": wallet.address,
                "balance": Decimal(wallet.balance),
            }
            if wallet is not None
            else None
        ),
    }


class CharacterService(BaseService):
    """
    Character creation, training and skill allocation.

    Public Methods
    --------------
    - create_character() -> New character + wallet
    - train() -> Settle one training session
    - allocate_skill() -> Spend a skill point on a stat
    - get_character() -> External character record
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        settlement_engine: SettlementEngine,
        mission_tracker: MissionProgressTracker,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.settlement = settlement_engine
        self.missions = mission_tracker
        self._characters = CharacterRepository(
            Character, get_logger(f"{__name__}.CharacterRepository")
        )
        self._wallets = WalletRepository(Wallet, get_logger(f"{__name__}.WalletRepository"))

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def create_character(
        self,
        nickname: str,
        position: Optional[str] = None,
        stats: Optional[Mapping[str, int]] = None,
        user_id: Optional[str] = None,
        is_bot: bool = False,
    ) -> Dict[str, Any]:
        """
        Create a character and its wallet atomically.

        Args:
            nickname: Unique display name
            position: Field position (defaults to ``characters.default_position``)
            stats: Partial stat overrides, each in [0, 100]; others default
            user_id: External owner reference
            is_bot: Whether the character is a synthetic match opponent

        Returns:
            The external character record

        Raises:
            ValidationError: Bad nickname or stats
            ConflictError: Nickname or wallet address already taken
        """
        nickname = InputValidator.validate_string(
            nickname,
            "nickname",
            min_length=self.get_config_int("characters.nickname.min_length", 3),
            max_length=self.get_config_int("characters.nickname.max_length", 32),
        )
        position = InputValidator.validate_string(
            position or self.get_config("characters.default_position", "forward"),
            "position",
            min_length=1,
            max_length=32,
        )
        try:
            profile = StatProfile.from_partial(
                stats, default=self.get_config_int("characters.default_stat", 50)
            )
        except DomainValidationError as exc:
            raise validation_error_from(exc) from exc

        address = wallet_address_for(nickname, self.get_config("characters.wallet_suffix", ".lupi"))
        starting_balance = Decimal(str(self.get_config("characters.starting_balance", "100.00")))

        self.log_operation("create_character", nickname=nickname, is_bot=is_bot)

        try:
            async with DatabaseService.get_transaction() as session:
                if await self._characters.find_by_nickname(session, nickname) is not None:
                    raise ConflictError("Character", f"nickname '{nickname}' is already taken")
                if await self._wallets.address_taken(session, address):
                    raise ConflictError("Wallet", f"address '{address}' is already taken")

                character = self._characters.add(
                    session,
                    Character(
                        nickname=nickname,
                        position=position,
                        user_id=user_id,
                        is_bot=is_bot,
                        experience=0,
                        level=1,
                        available_skill_points=0,
                        version=1,
                        **profile.as_dict(),
                    ),
                )
                await self._characters.flush(session)

                wallet = self._wallets.add(
                    session,
                    Wallet(character_id=character.id, address=address, balance=starting_balance),
                )
                await self._wallets.flush(session)

                record = character_record(character, wallet)
        except IntegrityError as exc:
            # Lost a race on the unique nickname/address.
            raise ConflictError("Character", f"nickname '{nickname}' is already taken") from exc

        self.log.info(
            f"Character created: {nickname}",
            extra={"character_id": record["id"], "wallet_address": address},
        )
        await self.emit_event(
            "character.created",
            {
                "character_id": record["id"],
                "nickname": nickname,
                "user_id": user_id,
                "is_bot": is_bot,
                "wallet_address": address,
            },
        )
        return record

    async def train(self, character_id: int, session_key: str) -> SettlementResult:
        """
        Credit one training session.

        Args:
            character_id: Character that trained
            session_key: Caller-unique key for this session (retries reuse it)

        Returns:
            The SettlementResult (``replayed`` on a retried session)

        Raises:
            StorageError: Persistence failure, including a concurrent attempt
                at the same session; retrying replays the stored result
        """
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        session_key = InputValidator.validate_string(session_key, "session_key", min_length=1, max_length=128)
        exp = self.get_config_int("progression.training.exp", 100)
        event_type = self.get_config("progression.training.event_type", "training")
        event_id = f"training:{character_id}:{session_key}"

        with LogContext(character_id=character_id, event_id=event_id, operation="train"):
            try:
                async with DatabaseService.get_transaction() as session:
                    result = await self.settlement.apply(
                        session, character_id, event_id, exp, 0, source=SettlementSource.TRAINING
                    )
                    outcomes = (
                        []
                        if result.replayed
                        else await self.missions.apply_event(session, character_id, event_type, 1)
                    )
            except IntegrityError as exc:
                raise StorageError("train", exc) from exc

            await self.settlement.publish_settlement(result)
            if result.replayed:
                return result

            await self.emit_event(
                "character.trained",
                {
                    "character_id": character_id,
                    "session_key": session_key,
                    "experience_gained": exp,
                    "new_level": result.new_level,
                },
            )
            await self.missions.publish_outcomes(outcomes)
            return result

    async def allocate_skill(self, character_id: int, skill_key: str) -> Dict[str, Any]:
        """
        Spend one skill point to raise one stat by one.

        Raises:
            ValidationError: Unknown skill key
            NotFoundError: Character missing
            ConflictError: No skill points left, or the stat is at its cap
        """
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        skill_key = InputValidator.validate_choice(skill_key, "skill_key", STAT_COLUMNS)
        cap = self.get_config_int("characters.stat_cap", 100)

        with LogContext(character_id=character_id, operation="allocate_skill"):
            async with DatabaseService.get_transaction() as session:
                character = await self._characters.get_for_update(session, character_id)
                if character is None:
                    raise NotFoundError("Character", character_id)

                if character.available_skill_points <= 0:
                    raise ConflictError("SkillPoints", "no skill points available")

                try:
                    raised = StatProfile(values=character.stats()).increment(skill_key, cap)
                except DomainValidationError as exc:
                    raise ConflictError("Stat", str(exc)) from exc

                new_value = raised.values[skill_key]
                setattr(character, skill_key, new_value)
                character.available_skill_points -= 1
                character.version += 1

                outcome = {
                    "character_id": character_id,
                    "skill_key": skill_key,
                    "new_value": new_value,
                    "available_skill_points": character.available_skill_points,
                }

            self.log.info(f"Skill allocated: {skill_key} -> {new_value}", extra=outcome)
            await self.emit_event("character.skill_allocated", outcome)
            return outcome

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_character(self, character_id: int) -> Dict[str, Any]:
        """
        External character record with wallet balance.

        Raises:
            NotFoundError: Character missing
        """
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        async with DatabaseService.get_session() as session:
            character = await self._characters.get(session, character_id)
            if character is None:
                raise NotFoundError("Character", character_id)
            wallet = await self._wallets.find_by_character(session, character_id)
            return character_record(character, wallet)
