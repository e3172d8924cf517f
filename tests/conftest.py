"""
Pytest Configuration and Fixtures for eventmesh Tests
=====================================================

Purpose
-------
Centralized fixtures for the eventmesh test suite: a fresh EventBus, an
in-memory EventGraphStore, a relational store on a throwaway SQLite file, and
(opt-in) a PostgreSQL testcontainer.

Architecture Notes
------------------
- Unit tests use the in-memory backend or mocks (fast, isolated)
- Integration tests use a real database through RelationalBackend
- PostgreSQL runs only when EVENTMESH_TEST_POSTGRES=1 (needs Docker)
- Environment variables are set before any eventmesh import, because
  Config is loaded and validated at import time
"""

from __future__ import annotations

import os

os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["DATABASE_URL"] = ""

from pathlib import Path
from typing import AsyncGenerator, Callable, Generator

import pytest
import pytest_asyncio

from eventmesh.core.database.service import DatabaseService
from eventmesh.core.event.bus import EventBus
from eventmesh.core.logging.logger import get_logger
from eventmesh.modules.event_graph.backends.memory import InMemoryBackend
from eventmesh.modules.event_graph.backends.relational import RelationalBackend
from eventmesh.modules.event_graph.store import EventGraphStore
from eventmesh.modules.event_graph.types import (
    EventContext,
    EventDraft,
    EventMetadata,
)

logger = get_logger(__name__)

POSTGRES_ENABLED = os.getenv("EVENTMESH_TEST_POSTGRES") == "1"


# ============================================================================
# EVENT BUS FIXTURES
# ============================================================================


@pytest.fixture
def bus() -> EventBus:
    """Fresh bus with the default log capacity (100)."""
    return EventBus(log_capacity=100)


# ============================================================================
# EVENT GRAPH FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def memory_store(memory_backend: InMemoryBackend) -> EventGraphStore:
    return EventGraphStore(memory_backend, max_depth=5, pool_limit=1000)


@pytest.fixture
def make_draft() -> Callable[..., EventDraft]:
    """
    Factory for drafts with sensible defaults.

    Usage:
        draft = make_draft("widget.created", related=["a", "b"], timestamp=10)
    """

    def factory(
        event_name: str = "widget.created",
        *,
        source: str = "test-widget",
        timestamp: int = 1_700_000_000_000,
        related: tuple[str, ...] | list[str] = (),
        should_document: bool | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
        payload: object = None,
    ) -> EventDraft:
        return EventDraft(
            event_name=event_name,
            source=source,
            timestamp=timestamp,
            payload=payload,
            should_document=should_document,
            context=EventContext(related_events=tuple(related)),
            metadata=EventMetadata(user_id=user_id, session_id=session_id),
        )

    return factory


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """
    File-backed SQLite URL.

    A file is used rather than ":memory:" because each pooled connection to
    ":memory:" would see its own empty database.
    """
    return f"sqlite+aiosqlite:///{tmp_path / 'eventmesh.db'}"


@pytest_asyncio.fixture
async def relational_backend(
    sqlite_url: str,
) -> AsyncGenerator[RelationalBackend, None]:
    backend = RelationalBackend(
        DatabaseService.from_config(sqlite_url), create_schema=True
    )
    await backend.start()

    yield backend

    await backend.close()


@pytest_asyncio.fixture
async def relational_store(
    relational_backend: RelationalBackend,
) -> EventGraphStore:
    return EventGraphStore(relational_backend, max_depth=5, pool_limit=1000)


@pytest.fixture(scope="session")
def postgres_url() -> Generator[str, None, None]:
    """
    Start a PostgreSQL testcontainer.

    Scope: session (container persists across all tests)
    Skipped unless EVENTMESH_TEST_POSTGRES=1.
    """
    if not POSTGRES_ENABLED:
        pytest.skip("set EVENTMESH_TEST_POSTGRES=1 to run PostgreSQL tests")

    from testcontainers.postgres import PostgresContainer

    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    container.start()

    url = container.get_connection_url()
    logger.info("PostgreSQL testcontainer started: %s", url)

    yield url

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()
