"""
Static configuration for eventmesh.

Purpose
-------
Read every tunable of the event bus, the event graph store and the logging
pipeline from the process environment (a `.env` file is honoured) and
expose them as class attributes of ``Config``. Values are parsed once at
import; ``reload_safe_configs()`` re-reads the subset that can change while
the store is running.

Every setting is declared once in ``_SETTINGS`` with its type, default and
bounds. A malformed or out-of-range value is reported and replaced by the
default, except in production where an unusable DATABASE_URL is fatal.

Settings
--------
Environment   ENVIRONMENT, DEBUG
Logging       LOG_LEVEL, LOG_JSON, LOG_COLORS, LOG_TO_FILE
Database      DATABASE_URL, DATABASE_POOL_*, DATABASE_STATEMENT_TIMEOUT_MS,
              DATABASE_ECHO, DATABASE_CREATE_SCHEMA
Event bus     EVENT_LOG_CAPACITY
Event graph   EVENT_GRAPH_MAX_DEPTH, EVENT_GRAPH_POOL_LIMIT

An empty DATABASE_URL selects the in-memory event store.

Dependencies
------------
- python-dotenv
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from eventmesh.core.config.errors import ConfigValidationError

load_dotenv()

SUPPORTED_DATABASE_SCHEMES = ("postgresql+asyncpg", "sqlite+aiosqlite")

# Config is imported by the logging pipeline, so plain stdlib logging here.
_bootstrap_log = logging.getLogger(__name__)


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """Unknown names map to DEVELOPMENT."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.DEVELOPMENT


@dataclass(frozen=True)
class _Setting:
    name: str
    kind: str  # "str" | "int" | "bool" | "optional_bool"
    default: Any
    bounds: Tuple[Optional[int], Optional[int]] = (None, None)
    reloadable: bool = False


_SETTINGS: Tuple[_Setting, ...] = (
    _Setting("ENVIRONMENT", "str", "development"),
    _Setting("DEBUG", "bool", False, reloadable=True),
    _Setting("LOG_LEVEL", "str", "INFO", reloadable=True),
    _Setting("LOG_JSON", "optional_bool", None),
    _Setting("LOG_COLORS", "bool", True),
    _Setting("LOG_TO_FILE", "bool", False),
    _Setting("DATABASE_URL", "str", ""),
    _Setting("DATABASE_POOL_SIZE", "int", 5, (1, 200)),
    _Setting("DATABASE_MAX_OVERFLOW", "int", 10, (0, 200)),
    _Setting("DATABASE_POOL_RECYCLE", "int", 1800, (60, None)),
    _Setting("DATABASE_POOL_TIMEOUT", "int", 30, (1, 600)),
    _Setting("DATABASE_STATEMENT_TIMEOUT_MS", "int", 30_000, (100, None)),
    _Setting("DATABASE_ECHO", "bool", False),
    _Setting("DATABASE_CREATE_SCHEMA", "bool", True),
    _Setting("EVENT_LOG_CAPACITY", "int", 100, (1, 100_000)),
    _Setting("EVENT_GRAPH_MAX_DEPTH", "int", 5, (0, 100), reloadable=True),
    _Setting("EVENT_GRAPH_POOL_LIMIT", "int", 1000, (1, 1_000_000), reloadable=True),
)

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


@dataclass
class ConfigLoadReport:
    """Where each setting came from on the last load, and what was rejected."""

    from_environment: List[str] = field(default_factory=list)
    rejected: Dict[str, str] = field(default_factory=dict)
    loaded_at: Optional[str] = None

    def reject(self, key: str, reason: str) -> None:
        self.rejected[key] = reason
        _bootstrap_log.warning("Ignoring %s: %s", key, reason)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "from_environment": sorted(self.from_environment),
            "rejected": dict(self.rejected),
            "loaded_at": self.loaded_at,
        }


class Config:
    """
    Process-wide settings, accessed as class attributes.

    Examples
    --------
    >>> Config.has_durable_store()
    False
    >>> Config.EVENT_LOG_CAPACITY
    100
    """

    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True
    LOG_TO_FILE: bool = False

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"

    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_RECYCLE: int = 1800
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_STATEMENT_TIMEOUT_MS: int = 30_000
    DATABASE_ECHO: bool = False
    DATABASE_CREATE_SCHEMA: bool = True

    EVENT_LOG_CAPACITY: int = 100

    EVENT_GRAPH_MAX_DEPTH: int = 5
    EVENT_GRAPH_POOL_LIMIT: int = 1000

    _report: ConfigLoadReport = ConfigLoadReport()
    _validated: bool = False

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @classmethod
    def _raw(cls, key: str) -> Optional[str]:
        raw = os.getenv(key)
        if raw is not None:
            cls._report.from_environment.append(key)
        return raw

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """Integer from the environment; the default replaces bad or out-of-range input."""
        raw = cls._raw(key)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError:
            cls._report.reject(key, f"{raw!r} is not an integer")
            return default
        if (min_val is not None and value < min_val) or (
            max_val is not None and value > max_val
        ):
            cls._report.reject(key, f"{value} outside [{min_val}, {max_val}]")
            return default
        return value

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        """Tri-state flag: unset or unrecognised gives None."""
        raw = cls._raw(key)
        if raw is None:
            return None
        word = raw.strip().lower()
        if word in _TRUE:
            return True
        if word in _FALSE:
            return False
        cls._report.reject(key, f"{raw!r} is not a boolean")
        return None

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        value = cls._safe_optional_bool(key)
        return default if value is None else value

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        raw = cls._raw(key)
        return default if raw is None else raw.strip()

    @classmethod
    def _read(cls, setting: _Setting, default: Any) -> Any:
        if setting.kind == "int":
            return cls._safe_int(setting.name, default, *setting.bounds)
        if setting.kind == "bool":
            return cls._safe_bool(setting.name, default)
        if setting.kind == "optional_bool":
            return cls._safe_optional_bool(setting.name)
        return cls._safe_str(setting.name, default)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls) -> None:
        """(Re)read every setting from the environment."""
        cls._report = ConfigLoadReport()
        for setting in _SETTINGS:
            setattr(cls, setting.name, cls._read(setting, setting.default))
        if cls.LOG_LEVEL.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            cls._report.reject("LOG_LEVEL", f"unknown level {cls.LOG_LEVEL!r}")
            cls.LOG_LEVEL = "INFO"
        cls._report.loaded_at = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Load once and check cross-field rules.

        Raises
        ------
        ConfigValidationError
            DATABASE_URL names an unsupported driver while ENVIRONMENT is
            production. Elsewhere the URL is dropped with a warning and the
            in-memory store is used.
        """
        if cls._validated:
            return
        cls.load()

        if cls.DATABASE_URL:
            scheme = cls.DATABASE_URL.split("://", 1)[0]
            if scheme not in SUPPORTED_DATABASE_SCHEMES:
                error = ConfigValidationError(
                    "DATABASE_URL",
                    f"driver '{scheme}' is not one of {', '.join(SUPPORTED_DATABASE_SCHEMES)}",
                )
                if cls.is_production():
                    raise error
                cls._report.reject("DATABASE_URL", str(error))
                cls.DATABASE_URL = ""
        elif cls.is_production():
            _bootstrap_log.warning(
                "No DATABASE_URL in production; documentable events stay in memory"
            )

        if cls.is_production() and cls.DEBUG:
            _bootstrap_log.warning("DEBUG is enabled in production")

        cls._validated = True
        _bootstrap_log.debug("Configuration loaded: %s", cls._report.as_dict())

    @classmethod
    def reload_safe_configs(cls) -> None:
        """
        Re-read the settings marked reloadable.

        The backend choice and pool sizing are fixed for the life of the
        process; only log level, DEBUG and traversal tuning change here.
        """
        for setting in _SETTINGS:
            if setting.reloadable:
                setattr(cls, setting.name, cls._read(setting, getattr(cls, setting.name)))
        _bootstrap_log.info(
            "Reloaded runtime settings",
            extra={"settings": [s.name for s in _SETTINGS if s.reloadable]},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @classmethod
    def environment(cls) -> Environment:
        return Environment.from_string(cls.ENVIRONMENT)

    @classmethod
    def is_production(cls) -> bool:
        return cls.environment() is Environment.PRODUCTION

    @classmethod
    def is_development(cls) -> bool:
        return cls.environment() is Environment.DEVELOPMENT

    @classmethod
    def is_testing(cls) -> bool:
        return cls.environment() is Environment.TESTING

    @classmethod
    def has_durable_store(cls) -> bool:
        """True when DATABASE_URL selects the relational event store."""
        return bool(cls.DATABASE_URL)

    @classmethod
    def get_load_report(cls) -> ConfigLoadReport:
        return cls._report

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Settings safe to log; the database URL itself is left out."""
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "durable_store": cls.has_durable_store(),
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "database_max_overflow": cls.DATABASE_MAX_OVERFLOW,
            "event_log_capacity": cls.EVENT_LOG_CAPACITY,
            "event_graph_max_depth": cls.EVENT_GRAPH_MAX_DEPTH,
            "event_graph_pool_limit": cls.EVENT_GRAPH_POOL_LIMIT,
        }


Config.validate()
