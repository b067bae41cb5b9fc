"""
Domain model validation primitives.

Purpose
-------
Shared validation for the frozen value objects and pure rule modules under
``src.domain``. These raise ``DomainValidationError``; services translate it
into ``ValidationError`` at their boundary.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional


class DomainValidationError(ValueError):
    """
    Exception raised when domain model validation fails.

    Attributes
    ----------
    field : Optional[str]
        Field name that failed validation (if applicable)
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def round_half_up(value: Any) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise DomainValidationError(
            f"{field_name} must be positive, got {value}",
            field=field_name,
        )


def validate_non_negative(value: int, field_name: str) -> None:
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )


def validate_range(value: int, min_val: int, max_val: int, field_name: str) -> None:
    """
    Validate that a value is within a range.

    Parameters
    ----------
    value : int
        Value to validate
    min_val : int
        Minimum allowed value (inclusive)
    max_val : int
        Maximum allowed value (inclusive)
    field_name : str
        Name of the field (for error messages)

    Raises
    ------
    DomainValidationError
        If value is outside the range
    """
    if not (min_val <= value <= max_val):
        raise DomainValidationError(
            f"{field_name} must be between {min_val} and {max_val}, got {value}",
            field=field_name,
        )


def validate_not_empty(value: str, field_name: str) -> None:
    if not value or not value.strip():
        raise DomainValidationError(f"{field_name} cannot be empty", field=field_name)
