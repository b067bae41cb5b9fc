"""
Character and wallet repositories.

Shared by the character service (creation, skill allocation) and the
settlement engine (the only writer of experience, level and balance).
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models import Character, Wallet
from src.modules.shared.base_repository import BaseRepository


class CharacterRepository(BaseRepository[Character]):
    async def find_by_nickname(self, session: AsyncSession, nickname: str) -> Optional[Character]:
        return await self.find_one_where(session, Character.nickname == nickname)

    async def find_bots(self, session: AsyncSession) -> List[Character]:
        """All bot characters, lowest id first."""
        return await self.find_many_where(
            session,
            Character.is_bot.is_(True),
            order_by=[Character.id],
        )


class WalletRepository(BaseRepository[Wallet]):
    async def find_by_character(
        self,
        session: AsyncSession,
        character_id: int,
        *,
        for_update: bool = False,
    ) -> Optional[Wallet]:
        return await self.find_one_where(
            session,
            Wallet.character_id == character_id,
            for_update=for_update,
        )

    async def address_taken(self, session: AsyncSession, address: str) -> bool:
        return await self.exists(session, Wallet.address == address)
