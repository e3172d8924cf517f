"""
ApplicationContext: wires the live bus and the durable event graph.

Purpose
-------
Build both event channels from Config and own their lifetime:

    initialize():  logging ─► EventBus ─► EventGraphStore.start()
    shutdown():    EventGraphStore.close() ─► bus subscriptions dropped ─► logging

The store backend is chosen exactly once here: relational when DATABASE_URL
is set, in-memory otherwise. A backend passed to the constructor wins.

Each step is timed and logged so slow database start-up is visible.
"""

from __future__ import annotations

import time
from typing import Optional

from eventmesh.core.config import Config
from eventmesh.core.database.service import DatabaseService
from eventmesh.core.event.bus import EventBus
from eventmesh.core.logging.logger import get_logger, setup_logging, shutdown_logging
from eventmesh.modules.event_graph.backends.base import EventStoreBackend
from eventmesh.modules.event_graph.backends.memory import InMemoryBackend
from eventmesh.modules.event_graph.backends.relational import RelationalBackend
from eventmesh.modules.event_graph.store import EventGraphStore

logger = get_logger(__name__)

_RULE = "─" * 60


def build_backend() -> EventStoreBackend:
    if Config.has_durable_store():
        return RelationalBackend(
            DatabaseService.from_config(),
            create_schema=Config.DATABASE_CREATE_SCHEMA,
        )
    return InMemoryBackend()


def _elapsed_ms(since: float) -> float:
    return (time.perf_counter() - since) * 1000


class ApplicationContext:
    """
    Owner of the EventBus and EventGraphStore for one process.

    Examples
    --------
    >>> context = ApplicationContext()
    >>> await context.initialize()
    >>> context.bus.publish("github.pr.selected", {"prNumber": 42})
    >>> await context.store.publish_documentable({"eventName": "provider.connected", ...})
    >>> await context.shutdown()

    Parameters
    ----------
    backend:
        Store backend to use instead of ``build_backend()``.
    configure_logging:
        Start and stop the logging pipeline with the context.
    """

    def __init__(
        self,
        backend: Optional[EventStoreBackend] = None,
        *,
        configure_logging: bool = True,
    ) -> None:
        self._backend_override = backend
        self._configure_logging = configure_logging
        self._bus: Optional[EventBus] = None
        self._store: Optional[EventGraphStore] = None
        self._ready = False

    # ----------------------------------------------------------------------
    # Startup
    # ----------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Raises
        ------
        RuntimeError
            Called twice, or a component failed to start. Components that
            did start are closed before the error propagates.
        """
        if self._ready:
            raise RuntimeError("ApplicationContext is already running")

        if self._configure_logging:
            setup_logging()

        logger.info(_RULE)
        logger.info("Starting event mesh (environment=%s)", Config.ENVIRONMENT)
        started = time.perf_counter()

        try:
            step = time.perf_counter()
            self._bus = EventBus(log_capacity=Config.EVENT_LOG_CAPACITY)
            logger.info("  bus ready, log capacity %d (%.2fms)", self._bus.log_capacity, _elapsed_ms(step))

            step = time.perf_counter()
            backend = (
                self._backend_override
                if self._backend_override is not None
                else build_backend()
            )
            self._store = EventGraphStore(backend)
            await self._store.start()
            logger.info(
                "  event graph ready on %s backend (%.2fms)", backend.name, _elapsed_ms(step)
            )
        except Exception as exc:
            logger.critical(
                "Event mesh failed to start",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            await self._emergency_shutdown()
            raise RuntimeError("Failed to initialize application context") from exc

        self._ready = True
        logger.info("Event mesh started in %.2fms", _elapsed_ms(started))
        logger.info(_RULE)

    # ----------------------------------------------------------------------
    # Teardown
    # ----------------------------------------------------------------------

    async def shutdown(self) -> None:
        if not self._ready:
            logger.debug("shutdown() on a context that is not running")
            return

        logger.info("Stopping event mesh")
        if self._store is not None:
            try:
                await self._store.close()
            except Exception as exc:
                logger.error(
                    "Event graph store did not close cleanly",
                    extra={"backend": self._store.backend.name, "error_type": type(exc).__name__},
                    exc_info=True,
                )
        if self._bus is not None:
            dropped = self._bus.get_subscription_count()
            self._bus.clear_subscriptions()
            logger.info("  dropped %d live subscriptions", dropped)

        self._ready = False
        logger.info("Event mesh stopped")

        if self._configure_logging:
            shutdown_logging()

    async def _emergency_shutdown(self) -> None:
        store, self._store, self._bus = self._store, None, None
        if store is None:
            return
        try:
            await store.close()
        except Exception as exc:
            logger.warning(
                "Store close failed while unwinding a failed start",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )

    # ----------------------------------------------------------------------
    # Accessors
    # ----------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._ready

    @property
    def bus(self) -> EventBus:
        if self._bus is None:
            raise RuntimeError("ApplicationContext.initialize() has not completed")
        return self._bus

    @property
    def store(self) -> EventGraphStore:
        if self._store is None:
            raise RuntimeError("ApplicationContext.initialize() has not completed")
        return self._store
