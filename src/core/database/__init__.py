"""
Database subsystem.

Provides the async SQLAlchemy engine, session and transaction management,
and the ORM base classes and mixins for model definitions.
"""

from src.core.database.base import Base, IdMixin, TimestampMixin, utc_now
from src.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "utc_now",
    # Main service
    "DatabaseService",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
