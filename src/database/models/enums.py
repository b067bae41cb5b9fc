"""
Database Model Enums
====================

String enumerations for categorical columns. Columns store ``.value``;
services compare against the enum members.
"""

from __future__ import annotations

import enum


class MissionScope(str, enum.Enum):
    """Who a mission's progress belongs to."""

    INDIVIDUAL = "individual"
    CLUB = "club"


class MissionStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class MatchStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class ClubRole(str, enum.Enum):
    """Roles are recorded here; permission checks belong to the caller."""

    MEMBER = "member"
    ADMIN = "admin"


class SettlementSource(str, enum.Enum):
    """Free-form label stored on each SettlementRecord."""

    MATCH = "match"
    TRAINING = "training"
    MISSION = "mission"
    MANUAL = "manual"


__all__ = [
    "MissionScope",
    "MissionStatus",
    "MatchStatus",
    "ClubRole",
    "SettlementSource",
]
