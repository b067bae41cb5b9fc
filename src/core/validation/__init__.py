"""
Validation package.

Re-exports `InputValidator`, the low-level type and bounds checks used by
services before touching persistence.
"""

from src.core.validation.input_validator import InputValidator

__all__ = [
    "InputValidator",
]
