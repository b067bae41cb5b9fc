"""
Progression Module
==================

- SettlementEngine: exactly-once experience/currency crediting
"""

from .settlement_service import SettlementEngine, SettlementRecordRepository

__all__ = ["SettlementEngine", "SettlementRecordRepository"]
