"""
SettlementRecord: the idempotency unit of reward crediting.
Pure schema only.

``event_id`` is the primary key, so a second insert for the same event
fails at the database even when two transactions race past the
existence check.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now


class SettlementRecord(Base):
    __tablename__ = "settlement_records"

    event_id: Mapped[str] = mapped_column(String(191), primary_key=True)

    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    experience_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    currency_delta: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    source: Mapped[str] = mapped_column(String(32), nullable=False, default="manual")

    result: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        doc="Snapshot of the SettlementResult returned on replay",
    )

    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    def __repr__(self) -> str:
        return f"<SettlementRecord event_id={self.event_id!r} character_id={self.character_id}>"
