"""
Unit Tests for InputValidator and the error taxonomy
====================================================
"""

import pytest

from src.core.exceptions import (
    ErrorSeverity,
    StorageError,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from src.core.validation import InputValidator
from src.domain.models.base import DomainValidationError
from src.modules.shared.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    SettlementMismatchError,
    ValidationError,
    validation_error_from,
)


@pytest.mark.unit
class TestIntegers:
    """Test integer validation."""

    def test_accepts_numeric_string(self):
        assert InputValidator.validate_integer("42", "amount") == 42

    @pytest.mark.parametrize("value", [True, 1.5, "abc", None])
    def test_rejects_non_integers(self, value):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_integer(value, "amount")

        assert exc_info.value.field == "amount"

    def test_bounds(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_integer(11, "amount", max_value=10)
        with pytest.raises(ValidationError):
            InputValidator.validate_integer(-1, "amount", min_value=0)

    @pytest.mark.parametrize("value", [0, -3])
    def test_entity_id_must_be_positive(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_entity_id(value, "character_id")


@pytest.mark.unit
class TestStringsAndChoices:
    """Test string and choice validation."""

    def test_string_stripped(self):
        assert InputValidator.validate_string("  Leo  ", "nickname", min_length=3) == "Leo"

    def test_string_too_short(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_string("ab", "nickname", min_length=3)

    def test_string_rejects_non_text(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_string(123, "nickname")

    def test_string_allowed_chars(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_string("bad!", "nickname", allowed_chars="a-z")

    def test_choice_case_insensitive(self):
        assert InputValidator.validate_choice("Speed", "skill_key", ["speed", "power"]) == "speed"

    def test_unknown_choice(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_choice("charisma", "skill_key", ["speed", "power"])


@pytest.mark.unit
class TestErrorTaxonomy:
    """Test exception metadata."""

    def test_not_found_message_and_code(self):
        error = NotFoundError("Character", 7)

        assert error.message == "Character not found: 7"
        assert error.error_code == "CHARACTER_NOT_FOUND"
        assert error.severity is ErrorSeverity.INFO

    def test_domain_errors_not_retryable(self):
        for error in (
            ConflictError("Stat", "at cap"),
            InvalidStateError("finish_match", "already finished"),
            ValidationError("amount", "must be positive"),
        ):
            assert is_transient_error(error) is False
            assert should_alert(error) is False

    def test_storage_error_retryable(self):
        error = StorageError("transaction", RuntimeError("connection reset"))

        assert is_transient_error(error) is True
        assert get_error_severity(error) is ErrorSeverity.ERROR
        assert error.to_dict()["details"]["error_type"] == "RuntimeError"

    def test_mismatch_is_invalid_state(self):
        error = SettlementMismatchError("match:1", {"exp": 60}, {"exp": 70})

        assert isinstance(error, InvalidStateError)
        assert error.details["stored"] == {"exp": 60}

    def test_domain_validation_translated(self):
        error = validation_error_from(DomainValidationError("bad stat", field="speed"))

        assert isinstance(error, ValidationError)
        assert error.field == "speed"

    def test_unknown_exception_alerts(self):
        assert should_alert(RuntimeError("boom")) is True
