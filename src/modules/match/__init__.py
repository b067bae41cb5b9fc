"""
Match Module
============

- MatchService: bot opponent selection, match lifecycle and reward settlement
"""

from .service import MatchService, match_event_id, match_record

__all__ = ["MatchService", "match_event_id", "match_record"]
