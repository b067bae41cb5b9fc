"""
Settlement Engine
=================

Purpose
-------
Apply an experience/currency grant to a character and its wallet exactly
once per event id. This is the only writer of ``experience``, ``level``,
``available_skill_points`` and ``balance``.

Domain
------
- Experience only grows; negative experience deltas are rejected
- Level from LevelCurve, never regressing; multi-level jumps in one call
- Skill points: ``levels_gained * progression.points_per_level``
- Wallet balance computed on the locked row, never below zero
- Outcome settlement through RewardPolicy

Idempotency
-----------
The SettlementRecord primary key is the event id. A replay returns the
stored SettlementResult with ``replayed=True`` and changes nothing. Two
concurrent first attempts both pass the existence check; the loser's
INSERT fails with IntegrityError, its transaction rolls back, and it
returns the winner's stored result.

A replay whose payload (character, exp delta, coin delta) differs from the
stored one returns the stored result with a warning, or raises
SettlementMismatchError when ``progression.settlement.strict_replay`` is on.

Transactions
------------
``settle`` opens its own transaction and publishes events after commit.
``apply`` runs inside a caller's transaction (mission payouts, match
results); the caller publishes with ``publish_settlement`` once committed.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.service import DatabaseService
from src.core.logging.logger import LogContext, get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models import Character, SettlementRecord, Wallet
from src.database.models.enums import SettlementSource
from src.domain.level_curve import LevelCurve, default_curve
from src.domain.models.base import DomainValidationError
from src.domain.models.settlement import OutcomeRequest, SettlementResult
from src.domain.reward_policy import RewardPolicy
from src.modules.character.repository import CharacterRepository, WalletRepository
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    NotFoundError,
    SettlementMismatchError,
    ValidationError,
    validation_error_from,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus

CENT = Decimal("0.01")


# ============================================================================
# Repository
# ============================================================================


class SettlementRecordRepository(BaseRepository[SettlementRecord]):
    """Lookups by event id go through ``get`` (event_id is the primary key)."""


# ============================================================================
# SettlementEngine
# ============================================================================


class SettlementEngine(BaseService):
    """
    Exactly-once reward crediting.

    Public Methods
    --------------
    - settle() -> Apply a grant in its own transaction
    - settle_outcome() -> Price a match outcome with RewardPolicy, then settle
    - apply() -> Apply a grant inside the caller's transaction
    - publish_settlement() -> Emit events for a committed result
    - get_settlement() -> Stored result for an event id
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        level_curve: Optional[LevelCurve] = None,
        reward_policy: Optional[RewardPolicy] = None,
        strict: Optional[bool] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.level_curve = level_curve or default_curve(config_manager)
        self.reward_policy = reward_policy or RewardPolicy.from_config(config_manager)
        self._strict = strict

        self._records = SettlementRecordRepository(
            SettlementRecord, get_logger(f"{__name__}.SettlementRecordRepository")
        )
        self._characters = CharacterRepository(
            Character, get_logger(f"{__name__}.CharacterRepository")
        )
        self._wallets = WalletRepository(Wallet, get_logger(f"{__name__}.WalletRepository"))

    @property
    def strict(self) -> bool:
        if self._strict is not None:
            return self._strict
        return bool(self.get_config("progression.settlement.strict_replay", False))

    @property
    def points_per_level(self) -> int:
        return self.get_config_int("progression.points_per_level", 5)

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def settle(
        self,
        character_id: int,
        event_id: str,
        exp_delta: int,
        coins_delta: Union[int, Decimal, str],
        source: Union[str, SettlementSource] = SettlementSource.MANUAL,
        bonus_skill_points: int = 0,
    ) -> SettlementResult:
        """
        Apply a grant exactly once for ``event_id``.

        Args:
            character_id: Character to credit
            event_id: Caller-unique idempotency key
            exp_delta: Experience to add; must be non-negative
            coins_delta: Currency to add; the resulting balance must stay >= 0
            source: Label stored on the record (match, training, mission, manual)
            bonus_skill_points: Extra skill points on top of level-up points

        Returns:
            SettlementResult; ``replayed`` is True if the event was already applied

        Raises:
            NotFoundError: Character or wallet missing
            ValidationError: Malformed input, a negative exp delta or a
                negative resulting balance
            SettlementMismatchError: Strict mode replay with a different payload
            StorageError: Persistence failure (safe to retry)

        Example:
            >>> result = await engine.settle(7, "match:42", 250, 80, source="match")
            >>> result.new_level, result.levels_gained
            (3, 2)
        """
        with LogContext(character_id=character_id, event_id=event_id, operation="settle"):
            try:
                async with DatabaseService.get_transaction() as session:
                    result = await self.apply(
                        session,
                        character_id,
                        event_id,
                        exp_delta,
                        coins_delta,
                        source=source,
                        bonus_skill_points=bonus_skill_points,
                    )
            except IntegrityError as exc:
                result = await self._resolve_duplicate(
                    exc, character_id, event_id, exp_delta, coins_delta
                )

            await self.publish_settlement(result)
            return result

    async def settle_outcome(
        self,
        character_id: int,
        request: Union[OutcomeRequest, Mapping[str, Any]],
    ) -> SettlementResult:
        """
        Price a match outcome with RewardPolicy and settle it.

        Args:
            character_id: Character to credit
            request: OutcomeRequest or ``{event_id, kind, actor_level, opponent_level}``

        Raises:
            ValidationError: Unknown outcome kind or malformed request
        """
        outcome = self._parse_outcome(request)
        grant = self.reward_policy.reward_for(
            outcome.kind, outcome.actor_level, outcome.opponent_level
        )
        self.log.debug(
            "Outcome priced",
            extra={
                "kind": outcome.kind.value,
                "exp": grant.exp,
                "coins": grant.coins,
                "multiplier": grant.multiplier,
            },
        )
        return await self.settle(
            character_id,
            outcome.event_id,
            grant.exp,
            grant.coins,
            source=SettlementSource.MATCH,
        )

    async def apply(
        self,
        session: AsyncSession,
        character_id: int,
        event_id: str,
        exp_delta: int,
        coins_delta: Union[int, Decimal, str],
        source: Union[str, SettlementSource] = SettlementSource.MANUAL,
        bonus_skill_points: int = 0,
    ) -> SettlementResult:
        """
        Apply a grant inside an open transaction.

        Does not publish events. IntegrityError from a concurrent duplicate
        propagates to the caller, whose transaction must roll back.
        """
        character_id = InputValidator.validate_entity_id(character_id, "character_id")
        event_id = InputValidator.validate_string(event_id, "event_id", min_length=1, max_length=191)
        exp_delta = InputValidator.validate_integer(exp_delta, "exp_delta")
        if exp_delta < 0:
            raise ValidationError("exp_delta", f"must be non-negative, got {exp_delta}")
        bonus_skill_points = InputValidator.validate_non_negative_integer(
            bonus_skill_points, "bonus_skill_points"
        )
        coins = self._to_amount(coins_delta)
        source_label = source.value if isinstance(source, SettlementSource) else str(source)

        existing = await self._records.get(session, event_id)
        if existing is not None:
            return self._replay(existing, character_id, exp_delta, coins)

        character = await self._characters.get_for_update(session, character_id)
        if character is None:
            raise NotFoundError("Character", character_id)
        wallet = await self._wallets.find_by_character(session, character_id, for_update=True)
        if wallet is None:
            raise NotFoundError("Wallet", character_id)

        old_experience = character.experience
        old_level = character.level
        old_balance = Decimal(wallet.balance).quantize(CENT)

        new_experience = old_experience + exp_delta
        try:
            curve_level = self.level_curve.level_for(new_experience)
        except DomainValidationError as exc:
            raise validation_error_from(exc) from exc
        new_level = max(old_level, curve_level)
        levels_gained = new_level - old_level
        skill_points = levels_gained * self.points_per_level + bonus_skill_points

        new_balance = (old_balance + coins).quantize(CENT)
        if new_balance < 0:
            raise ValidationError(
                "coins_delta",
                f"balance cannot go below zero (have {old_balance}, delta {coins})",
            )

        character.experience = new_experience
        character.level = new_level
        character.available_skill_points += skill_points
        character.version += 1
        wallet.balance = new_balance

        result = SettlementResult(
            character_id=character_id,
            event_id=event_id,
            experience_delta=exp_delta,
            currency_delta=coins,
            old_experience=old_experience,
            new_experience=new_experience,
            old_level=old_level,
            new_level=new_level,
            levels_gained=levels_gained,
            skill_points_awarded=skill_points,
            old_balance=old_balance,
            new_balance=new_balance,
        )

        self._records.add(
            session,
            SettlementRecord(
                event_id=event_id,
                character_id=character_id,
                experience_delta=exp_delta,
                currency_delta=coins,
                source=source_label,
                result=result.to_dict(),
            ),
        )
        # Surfaces a duplicate event id now rather than at commit.
        await self._records.flush(session)

        self.log.info(
            f"Settled {event_id}: +{exp_delta} exp, {coins:+} coins, {levels_gained} levels",
            extra={
                "character_id": character_id,
                "event_id": event_id,
                "source": source_label,
                "old_level": old_level,
                "new_level": new_level,
                "skill_points_awarded": skill_points,
                "new_balance": str(new_balance),
                "curve_version": self.level_curve.version,
            },
        )
        return result

    async def publish_settlement(self, result: SettlementResult) -> None:
        """Emit settlement events; replays emit nothing."""
        if result.replayed:
            return
        await self.emit_event("progression.settled", result.to_dict())
        if result.leveled_up:
            await self.emit_event(
                "progression.level_up",
                {
                    "character_id": result.character_id,
                    "event_id": result.event_id,
                    "old_level": result.old_level,
                    "new_level": result.new_level,
                    "levels_gained": result.levels_gained,
                    "skill_points_awarded": result.skill_points_awarded,
                },
            )

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_settlement(self, event_id: str) -> Optional[SettlementResult]:
        event_id = InputValidator.validate_string(event_id, "event_id", min_length=1, max_length=191)
        async with DatabaseService.get_session() as session:
            record = await self._records.get(session, event_id)
            if record is None:
                return None
            return SettlementResult.from_dict(record.result)

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    def _replay(
        self,
        record: SettlementRecord,
        character_id: int,
        exp_delta: int,
        coins: Decimal,
    ) -> SettlementResult:
        stored = SettlementResult.from_dict(record.result).as_replay()
        requested = {
            "character_id": character_id,
            "experience_delta": exp_delta,
            "currency_delta": str(coins),
        }
        recorded = {
            "character_id": record.character_id,
            "experience_delta": record.experience_delta,
            "currency_delta": str(Decimal(record.currency_delta).quantize(CENT)),
        }

        if requested != recorded:
            if self.strict:
                raise SettlementMismatchError(record.event_id, recorded, requested)
            self.log.warning(
                "Settlement replay with a different payload; returning stored result",
                extra={"event_id": record.event_id, "stored": recorded, "requested": requested},
            )
        else:
            self.log.info(
                f"Settlement replay: {record.event_id}",
                extra={"event_id": record.event_id, "character_id": record.character_id},
            )
        return stored

    async def _resolve_duplicate(
        self,
        error: IntegrityError,
        character_id: int,
        event_id: str,
        exp_delta: int,
        coins_delta: Union[int, Decimal, str],
    ) -> SettlementResult:
        """Load the winner's record after losing a duplicate-insert race."""
        async with DatabaseService.get_session() as session:
            record = await self._records.get(session, event_id)
            if record is None:
                # The conflict was not on the event id; nothing to replay.
                raise error
            self.log.info(
                "Concurrent settlement lost the insert race; replaying stored result",
                extra={"event_id": event_id},
            )
            return self._replay(record, character_id, exp_delta, self._to_amount(coins_delta))

    @staticmethod
    def _to_amount(value: Union[int, Decimal, str]) -> Decimal:
        if isinstance(value, (bool, float)):
            raise ValidationError("coins_delta", f"must be an integer or decimal, got {value!r}")
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError("coins_delta", f"not a number: {value!r}") from exc
        if not amount.is_finite():
            raise ValidationError("coins_delta", "must be finite")
        return amount.quantize(CENT)

    @staticmethod
    def _parse_outcome(request: Union[OutcomeRequest, Mapping[str, Any]]) -> OutcomeRequest:
        if isinstance(request, OutcomeRequest):
            return request
        try:
            return OutcomeRequest(
                event_id=str(request["event_id"]),
                kind=request["kind"],
                actor_level=int(request["actor_level"]),
                opponent_level=int(request["opponent_level"]),
            )
        except KeyError as exc:
            raise ValidationError(str(exc.args[0]), "is required") from exc
        except DomainValidationError as exc:
            raise validation_error_from(exc) from exc
        except (TypeError, ValueError) as exc:
            raise ValidationError("outcome", str(exc)) from exc
