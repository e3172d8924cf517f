"""
ORM base for eventmesh models.

Provides the declarative `Base` every table model inherits from, a
timezone-aware `utc_now`, and a `TimestampMixin` for rows that track when
they were created and last replaced.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Adds `created_at` / `updated_at` columns maintained from Python."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        comment="When the row was first written",
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
        comment="When the row was last replaced",
    )
