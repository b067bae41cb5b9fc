"""
Input Validation Layer

Purpose
-------
Low-level validation for values entering the core from callers: ids,
amounts, names, enumerated choices. Converts to the right type and
enforces bounds, raising ``ValidationError`` with a field name.

Non-Responsibilities
--------------------
- Business rule validation (service layer concern)
- Database constraints (persistence concern)

Observability
-------------
Every failure is logged at debug level with field_name, raw_value (repr)
and reason.
"""

from __future__ import annotations

import re
from typing import Any, NoReturn, Optional, Sequence

from src.core.logging.logger import get_logger
from src.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless input validation helpers.

    All methods return the validated (and converted) value or raise
    ValidationError; none of them fail silently.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
        allow_zero: bool = True,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds checking.

        Booleans are rejected even though ``bool`` subclasses ``int``.

        Args:
            value: Input value to validate (string, int, etc.)
            field_name: Name of field for error messages/logging
            min_value: Minimum allowed value (inclusive)
            max_value: Maximum allowed value (inclusive)
            allow_zero: Whether zero is acceptable

        Returns:
            Validated integer value

        Raises:
            ValidationError: If validation fails
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, bool) or isinstance(value, float) and not value.is_integer():
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if not allow_zero and int_value == 0:
            _raise_validation_error(field_name, int_value, "Cannot be zero")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name, int_value, f"Must be at least {min_value}, got {int_value}"
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name, int_value, f"Cannot exceed {max_value}, got {int_value}"
            )

        return int_value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        """Validate that value is a strictly positive integer (>= 1)."""
        return InputValidator.validate_integer(
            value=value,
            field_name=field_name,
            min_value=1,
            max_value=max_value,
            allow_zero=False,
        )

    @staticmethod
    def validate_non_negative_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(
            value=value,
            field_name=field_name,
            min_value=0,
            max_value=max_value,
        )

    @staticmethod
    def validate_entity_id(value: Any, field_name: str) -> int:
        """Validate a database id (positive 63-bit integer)."""
        return InputValidator.validate_positive_integer(
            value, field_name=field_name, max_value=2**63 - 1
        )

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        allowed_chars: Optional[str] = None,
    ) -> str:
        """
        Validate string input with optional length and character constraints.

        Args:
            value: String value to validate (surrounding whitespace is stripped)
            field_name: Name of field for error messages
            min_length: Minimum string length
            max_length: Maximum string length
            allowed_chars: Regex character class for allowed characters
                           (e.g., 'a-zA-Z0-9 _')

        Returns:
            Validated string

        Raises:
            ValidationError: If validation fails
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be text")

        str_value = value.strip()

        if min_length is not None and len(str_value) < min_length:
            _raise_validation_error(
                field_name, str_value, f"Must be at least {min_length} characters"
            )

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(
                field_name, str_value, f"Cannot exceed {max_length} characters"
            )

        if allowed_chars is not None and not re.fullmatch(f"[{allowed_chars}]+", str_value):
            _raise_validation_error(field_name, str_value, "Contains invalid characters")

        return str_value

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_choice(
        value: Any,
        field_name: str,
        valid_choices: Sequence[str],
    ) -> str:
        """
        Validate that value is one of the allowed choices (case-insensitive).

        Returns:
            Lowercased validated choice
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        normalized = str(value).strip().lower()
        allowed = [choice.lower() for choice in valid_choices]
        if normalized not in allowed:
            _raise_validation_error(
                field_name,
                value,
                f"Invalid choice '{value}'. Must be one of: {', '.join(allowed)}",
            )
        return normalized
