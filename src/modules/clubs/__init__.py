"""
Clubs Module
============

- ClubMembershipService: club creation, joining and leaving
- ClubContributionAggregator: weekly and lifetime contribution counters
"""

from .contribution_service import ClubContributionAggregator
from .membership_service import ClubMembershipService, club_record
from .repository import ClubMembershipRepository, ClubRepository, membership_record

__all__ = [
    "ClubContributionAggregator",
    "ClubMembershipService",
    "ClubRepository",
    "ClubMembershipRepository",
    "club_record",
    "membership_record",
]
