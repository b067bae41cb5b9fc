"""
ClubMembership: association of characters to clubs.
Pure schema only.

A character belongs to at most one club (unique character_id).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin, utc_now


class ClubMembership(Base, IdMixin, TimestampMixin):
    __tablename__ = "club_memberships"
    __table_args__ = (
        CheckConstraint("weekly_contribution >= 0", name="weekly_non_negative"),
        CheckConstraint("total_contribution >= 0", name="total_non_negative"),
        Index("ix_club_memberships_club_weekly", "club_id", "weekly_contribution"),
    )

    club_id: Mapped[int] = mapped_column(
        ForeignKey("clubs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    role: Mapped[str] = mapped_column(String(20), nullable=False, default="member")

    weekly_contribution: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_contribution: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_contribution_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
