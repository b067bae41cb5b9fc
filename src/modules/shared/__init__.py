"""
Shared service infrastructure: the base service and repository classes and
the domain exception taxonomy used by every module.
"""

from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    ConflictError,
    ErrorSeverity,
    InvalidStateError,
    NotFoundError,
    ProgressionDomainException,
    SettlementMismatchError,
    StorageError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
    validation_error_from,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "ProgressionDomainException",
    "NotFoundError",
    "ConflictError",
    "InvalidStateError",
    "ValidationError",
    "SettlementMismatchError",
    "StorageError",
    "ErrorSeverity",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    "validation_error_from",
]
