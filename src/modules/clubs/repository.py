"""
Club repositories.

Counters are changed with SQL-side increments (``SET x = x + :delta``) so
two concurrent contributions never lose an update, and the weekly reset is
one unconditional bulk ``SET weekly_contribution = 0``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models import Character, Club, ClubMembership
from src.modules.shared.base_repository import BaseRepository


class ClubRepository(BaseRepository[Club]):
    async def find_by_name(self, session: AsyncSession, name: str) -> Optional[Club]:
        return await self.find_one_where(session, func.lower(Club.name) == name.lower())

    async def increment_contribution(self, session: AsyncSession, club_id: int, amount: int) -> None:
        await session.execute(
            update(Club)
            .where(Club.id == club_id)
            .values(
                weekly_contribution=Club.weekly_contribution + amount,
                total_contribution=Club.total_contribution + amount,
            )
            .execution_options(synchronize_session=False)
        )
        self._trace("increment_contribution", club_id=club_id, amount=amount)

    async def adjust_member_count(
        self,
        session: AsyncSession,
        club_id: int,
        delta: int,
        weekly_delta: int = 0,
    ) -> None:
        await session.execute(
            update(Club)
            .where(Club.id == club_id)
            .values(
                member_count=Club.member_count + delta,
                weekly_contribution=Club.weekly_contribution + weekly_delta,
            )
            .execution_options(synchronize_session=False)
        )
        self._trace("adjust_member_count", club_id=club_id, delta=delta)

    async def reset_weekly(self, session: AsyncSession, club_id: Optional[int] = None) -> int:
        stmt = update(Club).values(weekly_contribution=0)
        if club_id is not None:
            stmt = stmt.where(Club.id == club_id)
        result = await session.execute(stmt.execution_options(synchronize_session=False))
        self._trace("reset_weekly", club_id=club_id, rows=result.rowcount)
        return int(result.rowcount or 0)


class ClubMembershipRepository(BaseRepository[ClubMembership]):
    async def find_membership(
        self,
        session: AsyncSession,
        club_id: int,
        character_id: int,
        *,
        for_update: bool = False,
    ) -> Optional[ClubMembership]:
        return await self.find_one_where(
            session,
            ClubMembership.club_id == club_id,
            ClubMembership.character_id == character_id,
            for_update=for_update,
        )

    async def find_by_character(
        self, session: AsyncSession, character_id: int
    ) -> Optional[ClubMembership]:
        return await self.find_one_where(session, ClubMembership.character_id == character_id)

    async def increment_contribution(
        self,
        session: AsyncSession,
        membership_id: int,
        amount: int,
        at: datetime,
    ) -> None:
        await session.execute(
            update(ClubMembership)
            .where(ClubMembership.id == membership_id)
            .values(
                weekly_contribution=ClubMembership.weekly_contribution + amount,
                total_contribution=ClubMembership.total_contribution + amount,
                last_contribution_date=at,
            )
            .execution_options(synchronize_session=False)
        )
        self._trace("increment_contribution", membership_id=membership_id, amount=amount)

    async def reset_weekly(self, session: AsyncSession, club_id: Optional[int] = None) -> int:
        stmt = update(ClubMembership).values(weekly_contribution=0)
        if club_id is not None:
            stmt = stmt.where(ClubMembership.club_id == club_id)
        result = await session.execute(stmt.execution_options(synchronize_session=False))
        self._trace("reset_weekly", club_id=club_id, rows=result.rowcount)
        return int(result.rowcount or 0)

    async def weekly_ranking(
        self, session: AsyncSession, club_id: int, limit: int
    ) -> List[Tuple[ClubMembership, str]]:
        """Members by weekly contribution desc, earliest contributor first on ties."""
        stmt = (
            select(ClubMembership, Character.nickname)
            .join(Character, Character.id == ClubMembership.character_id)
            .where(ClubMembership.club_id == club_id)
            .order_by(
                ClubMembership.weekly_contribution.desc(),
                ClubMembership.last_contribution_date.asc().nulls_last(),
                ClubMembership.id.asc(),
            )
            .limit(limit)
        )
        rows = (await session.execute(stmt)).all()
        self._trace("weekly_ranking", club_id=club_id, found_count=len(rows))
        return [(membership, nickname) for membership, nickname in rows]

    async def totals(self, session: AsyncSession, club_id: int) -> Tuple[int, int, int]:
        """``(weekly, total, members)`` summed over the club's memberships."""
        stmt = select(
            func.coalesce(func.sum(ClubMembership.weekly_contribution), 0),
            func.coalesce(func.sum(ClubMembership.total_contribution), 0),
            func.count(ClubMembership.id),
        ).where(ClubMembership.club_id == club_id)
        weekly, total, members = (await session.execute(stmt)).one()
        return int(weekly), int(total), int(members)


def membership_record(membership: ClubMembership, **extra: Any) -> dict[str, Any]:
    return {
        "club_id": membership.club_id,
        "character_id": membership.character_id,
        "role": membership.role,
        "weekly_contribution": membership.weekly_contribution,
        "total_contribution": membership.total_contribution,
        "last_contribution_date": membership.last_contribution_date,
        "joined_at": membership.joined_at,
        **extra,
    }
