"""
Domain value objects.

Database models (``src/database/models``) are plain SQLAlchemy schemas;
these frozen dataclasses carry the rules that do not need persistence.
"""

from src.domain.models.base import (
    DomainValidationError,
    validate_non_negative,
    validate_not_empty,
    validate_positive,
    validate_range,
)
from src.domain.models.character import (
    DEFAULT_STAT_VALUE,
    STAT_MAX,
    STAT_NAMES,
    StatProfile,
)
from src.domain.models.match import MAX_SCORE, MatchResult
from src.domain.models.settlement import (
    OutcomeKind,
    OutcomeRequest,
    RewardGrant,
    SettlementResult,
)

__all__ = [
    "DomainValidationError",
    "validate_positive",
    "validate_non_negative",
    "validate_range",
    "validate_not_empty",
    "STAT_NAMES",
    "STAT_MAX",
    "DEFAULT_STAT_VALUE",
    "StatProfile",
    "MAX_SCORE",
    "MatchResult",
    "OutcomeKind",
    "OutcomeRequest",
    "RewardGrant",
    "SettlementResult",
]
