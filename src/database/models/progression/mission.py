"""
Mission: a goal that accumulates progress from one event type.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Mission(Base, IdMixin, TimestampMixin):
    """
    Mission definition plus aggregate state.

    Schema-only:
    - mission_type: event type that advances the mission (e.g. ``match_won``)
    - scope: ``individual`` or ``club`` (see MissionScope)
    - per_member: club scope only; pay every contributing member
    - current_value: club aggregate, sum of member progress
    """

    __tablename__ = "missions"
    __table_args__ = (
        CheckConstraint("target_value > 0", name="target_positive"),
        CheckConstraint("current_value >= 0", name="current_non_negative"),
        Index("ix_missions_status_type", "status", "mission_type"),
    )

    title: Mapped[str] = mapped_column(String(120), nullable=False)
    mission_type: Mapped[str] = mapped_column(String(64), nullable=False)
    target_value: Mapped[int] = mapped_column(Integer, nullable=False)

    reward_exp: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    reward_coins: Mapped[int] = mapped_column(Integer, nullable=False, default=200)
    reward_skill_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    scope: Mapped[str] = mapped_column(String(16), nullable=False, default="individual")
    per_member: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    club_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("clubs.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Mission id={self.id} type={self.mission_type!r} status={self.status}>"
