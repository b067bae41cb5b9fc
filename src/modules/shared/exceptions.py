"""
Domain exceptions for the progression core.

Purpose
-------
Define the exception hierarchy raised by services for game-rule
violations. Callers (API handlers, bots, job runners) translate these into
user-facing responses; the core never formats messages for end users.

Design Notes
------------
- All domain exceptions inherit from `ProgressionDomainException`, which
  shares the `StructuredError` metadata contract with infrastructure errors
  (message, details, severity, is_retryable, error_code).
- Domain errors are never retryable: retrying the same input produces the
  same rejection. Only `StorageError` (re-exported here) is retryable.
"""

from __future__ import annotations

from typing import Any, Optional

from src.core.exceptions import (
    ErrorSeverity,
    StorageError,
    StructuredError,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from src.domain.models.base import DomainValidationError


class ProgressionDomainException(StructuredError):
    """
    Base exception for all domain-level errors.

    Example:
        >>> raise ProgressionDomainException(
        ...     "Settlement rejected",
        ...     {"reason": "character archived"}
        ... )
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False


class NotFoundError(ProgressionDomainException):
    """
    Raised when a referenced entity does not exist.

    Args:
        resource_type: Type of resource (e.g., "Character", "Club", "Mission")
        identifier: Optional identifier for the missing resource
    """

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ConflictError(ProgressionDomainException):
    """
    Raised when an operation conflicts with current state.

    Examples: a nickname already in use, a character already in a club,
    spending more skill points than are available.

    Args:
        resource_type: Type of resource in conflict
        reason: Explanation of the conflict
    """

    def __init__(self, resource_type: str, reason: str) -> None:
        self.resource_type = resource_type
        self.reason = reason
        super().__init__(
            f"{resource_type} conflict: {reason}",
            details={"resource_type": resource_type, "reason": reason},
            error_code=f"{resource_type.upper()}_CONFLICT",
        )


class InvalidStateError(ProgressionDomainException):
    """
    Raised when an action is not allowed in the entity's current state.

    Args:
        action: Description of the attempted action
        reason: Explanation of why it's not allowed

    Example:
        >>> raise InvalidStateError("finish_match", "match already finished")
    """

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


class ValidationError(ProgressionDomainException):
    """
    Raised when an input fails validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class SettlementMismatchError(InvalidStateError):
    """
    Raised in strict mode when an event id is replayed with a payload that
    differs from the one originally applied.
    """

    def __init__(self, event_id: str, stored: dict[str, Any], requested: dict[str, Any]) -> None:
        super().__init__(
            "settle",
            f"event '{event_id}' was already applied with a different payload",
        )
        self.event_id = event_id
        self.details.update({"event_id": event_id, "stored": stored, "requested": requested})


def validation_error_from(exc: DomainValidationError) -> ValidationError:
    """Translate a pure-domain validation failure at a service boundary."""
    return ValidationError(exc.field or "input", str(exc))


__all__ = [
    "ErrorSeverity",
    "ProgressionDomainException",
    "NotFoundError",
    "ConflictError",
    "InvalidStateError",
    "ValidationError",
    "SettlementMismatchError",
    "StorageError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    "validation_error_from",
]
