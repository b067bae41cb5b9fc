"""
Missions Module
===============

- MissionProgressTracker: progress accumulation and once-only mission rewards
"""

from .tracker import (
    MissionOutcome,
    MissionProgressTracker,
    club_mission_event_id,
    mission_event_id,
)

__all__ = [
    "MissionProgressTracker",
    "MissionOutcome",
    "mission_event_id",
    "club_mission_event_id",
]
