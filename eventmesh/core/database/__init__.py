"""
Database subsystem for eventmesh.

Provides the async SQLAlchemy engine and session management used by the
relational event store, plus the ORM base for model definitions.
"""

from eventmesh.core.database.base import Base, TimestampMixin, utc_now
from eventmesh.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
    DatabaseSettings,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "TimestampMixin",
    "utc_now",
    # Main service
    "DatabaseService",
    "DatabaseSettings",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
