"""
Wallet: 1:1 currency holder for a Character.
Pure schema only. Balance is written by the settlement engine alone.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Wallet(Base, IdMixin, TimestampMixin):
    __tablename__ = "wallets"
    __table_args__ = (CheckConstraint("balance >= 0", name="balance_non_negative"),)

    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    address: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        doc="'<nickname lowercased, spaces removed>.lupi'",
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("100.00"),
    )

    def __repr__(self) -> str:
        return f"<Wallet character_id={self.character_id} balance={self.balance}>"
