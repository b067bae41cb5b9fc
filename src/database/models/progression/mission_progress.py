"""
MissionProgress: per (mission, character) progress.
Pure schema only. Rows are never deleted by normal operation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class MissionProgress(Base, IdMixin, TimestampMixin):
    __tablename__ = "mission_progress"
    __table_args__ = (
        UniqueConstraint("mission_id", "character_id", name="uq_mission_progress_mission_character"),
        CheckConstraint("progress_value >= 0", name="progress_non_negative"),
    )

    mission_id: Mapped[int] = mapped_column(
        ForeignKey("missions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    progress_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Set once, when progress first reaches the target",
    )
