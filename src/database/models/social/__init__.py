from .club import Club
from .club_membership import ClubMembership

__all__ = ["Club", "ClubMembership"]
