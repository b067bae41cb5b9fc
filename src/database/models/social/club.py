"""
Club: a group of characters pooling contributions.
Pure schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Club(Base, IdMixin, TimestampMixin):
    """
    Club row.

    Schema-only:
    - member_count (maintained by membership service)
    - weekly_contribution / total_contribution (sums over memberships,
      kept in step by the contribution aggregator)
    """

    __tablename__ = "clubs"
    __table_args__ = (
        CheckConstraint("member_count >= 0", name="member_count_non_negative"),
        CheckConstraint("total_contribution >= 0", name="total_non_negative"),
        CheckConstraint("weekly_contribution >= 0", name="weekly_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(48), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weekly_contribution: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_contribution: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Club id={self.id} name={self.name!r} members={self.member_count}>"
