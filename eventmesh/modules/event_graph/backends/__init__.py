"""
Storage strategies for the event graph store.

- EventStoreBackend: abstract contract every backend fulfils
- InMemoryBackend: process-local dicts; also the write fallback
- RelationalBackend: SQLAlchemy (PostgreSQL via asyncpg, SQLite via aiosqlite)
"""

from .base import EventStoreBackend
from .memory import InMemoryBackend
from .relational import RelationalBackend

__all__ = [
    "EventStoreBackend",
    "InMemoryBackend",
    "RelationalBackend",
]
