"""
Database Models Package
=======================

SQLAlchemy ORM models grouped by area:

- character: Character, Wallet
- progression: SettlementRecord, Mission, MissionProgress
- social: Club, ClubMembership
- match: Match
- enums: string enums for categorical columns

Importing this package registers every table on ``Base.metadata``
(``DatabaseService.create_schema`` relies on that).
"""

from src.core.database.base import Base

from . import enums
from .character import STAT_COLUMNS, Character, Wallet
from .match import Match
from .progression import Mission, MissionProgress, SettlementRecord
from .social import Club, ClubMembership

__all__ = [
    "Base",
    "Character",
    "Wallet",
    "STAT_COLUMNS",
    "SettlementRecord",
    "Mission",
    "MissionProgress",
    "Club",
    "ClubMembership",
    "Match",
    "enums",
]
