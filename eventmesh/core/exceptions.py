"""
Exception hierarchy for eventmesh.

Purpose
-------
Give every failure the mesh can observe a stable code, a severity and a
retry hint so log records and alerting can be driven from the exception
alone.

Hierarchy
---------
EventMeshException
├── ConfigurationError   wiring-time misconfiguration (critical)
├── ValidationError      malformed caller input (info)
├── EventBusError        subscriber failure during dispatch (error)
└── WrappedError         carries the underlying exception
    ├── DatabaseError        engine / schema failures (retryable)
    └── StoreBackendError    event store read or write failed (retryable)

Only ``ValidationError`` normally reaches callers. The bus logs
``EventBusError`` and keeps dispatching; the graph store turns
``StoreBackendError`` into a memory fallback or an empty read.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_ALERTING = frozenset({ErrorSeverity.ERROR, ErrorSeverity.CRITICAL})


class EventMeshException(Exception):
    """
    Base class; subclasses set ``code``, ``severity`` and ``retryable``.

    Parameters
    ----------
    message:
        Human readable summary.
    details:
        Structured fields merged into log records via ``to_dict()``.
    """

    code: str = "EVENTMESH_ERROR"
    default_severity: ErrorSeverity = ErrorSeverity.ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        severity: Optional[ErrorSeverity] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.severity: ErrorSeverity = severity or self.default_severity

    @property
    def error_code(self) -> str:
        return self.code

    @property
    def is_retryable(self) -> bool:
        return self.retryable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "is_retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ConfigurationError(EventMeshException):
    code = "CONFIG_ERROR"
    default_severity = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(f"{config_key} {message}", {"config_key": config_key})


class ValidationError(EventMeshException):
    """Malformed input: bad event name, timestamp, time window or depth."""

    code = "VALIDATION_ERROR"
    default_severity = ErrorSeverity.INFO

    def __init__(self, field_name: str, message: str) -> None:
        self.field_name = field_name
        super().__init__(f"{field_name}: {message}", {"field_name": field_name})


class EventBusError(EventMeshException):
    """A subscriber raised while an event was dispatched to it."""

    code = "EVENT_BUS_ERROR"

    def __init__(
        self, event_name: str, subscription_id: str, original_error: Exception
    ) -> None:
        self.event_name = event_name
        self.subscription_id = subscription_id
        self.original_error = original_error
        super().__init__(
            f"handler of {subscription_id} raised on '{event_name}'",
            {
                "event_name": event_name,
                "subscription_id": subscription_id,
                "error_type": type(original_error).__name__,
                "error": str(original_error),
            },
        )


class WrappedError(EventMeshException):
    """Failure of ``operation`` caused by ``original_error``."""

    retryable = True

    def __init__(
        self, operation: str, original_error: Exception, **details: Any
    ) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"{operation} failed: {original_error}",
            {
                **details,
                "operation": operation,
                "error_type": type(original_error).__name__,
                "error": str(original_error),
            },
        )


class DatabaseError(WrappedError):
    code = "DATABASE_ERROR"


class StoreBackendError(WrappedError):
    """Raised by an event store backend; the graph store absorbs it."""

    code = "STORE_BACKEND_ERROR"
    default_severity = ErrorSeverity.WARNING

    def __init__(self, backend: str, operation: str, original_error: Exception) -> None:
        self.backend = backend
        super().__init__(operation, original_error, backend=backend)


def is_transient_error(exc: BaseException) -> bool:
    return isinstance(exc, EventMeshException) and exc.retryable


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    if isinstance(exc, EventMeshException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: BaseException) -> bool:
    """Unknown exceptions alert; mesh exceptions alert at ERROR and above."""
    return get_error_severity(exc) in _ALERTING
