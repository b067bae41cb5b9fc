"""
Character: persistent game character.
Pure schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin

STAT_COLUMNS = ("passing", "shooting", "dribbling", "speed", "defense", "power")


class Character(Base, IdMixin, TimestampMixin):
    """
    Character progression row.

    Schema-only:
    - experience / level (level always equals the curve level for experience)
    - available_skill_points (spent one at a time on stats)
    - six stat columns, each within [0, 100]
    - is_bot (eligible as a synthetic match opponent)
    """

    __tablename__ = "characters"
    __table_args__ = (
        CheckConstraint("experience >= 0", name="experience_non_negative"),
        CheckConstraint("level >= 1", name="level_positive"),
        CheckConstraint("available_skill_points >= 0", name="skill_points_non_negative"),
        *(
            CheckConstraint(f"{stat} BETWEEN 0 AND 100", name=f"{stat}_range")
            for stat in STAT_COLUMNS
        ),
    )

    user_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        doc="External owner reference (account id in the calling service)",
    )

    nickname: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    position: Mapped[str] = mapped_column(String(32), nullable=False, default="forward")
    is_bot: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, index=True)
    available_skill_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    passing: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    shooting: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    dribbling: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    speed: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    defense: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    power: Mapped[int] = mapped_column(Integer, nullable=False, default=50)

    version: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
        doc="Incremented on every progression mutation",
    )

    def stats(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in STAT_COLUMNS}

    def __repr__(self) -> str:
        return f"<Character id={self.id} nickname={self.nickname!r} level={self.level}>"
