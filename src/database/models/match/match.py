"""
Match: one simulated match against a bot opponent.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Match(Base, IdMixin, TimestampMixin):
    __tablename__ = "matches"

    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    opponent_character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="in_progress")

    actor_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    opponent_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    winner_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Winning character id; NULL on a draw or while in progress",
    )

    event_id: Mapped[Optional[str]] = mapped_column(String(191), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Match id={self.id} status={self.status}>"
