"""
Configuration subsystem for eventmesh.

Static configuration only: values come from environment variables (with
`.env` support) and are validated once at import time.

Usage
-----
```python
from eventmesh.core.config import Config

if Config.has_durable_store():
    logger.info("Relational event store configured")
```
"""

from eventmesh.core.config.config import (
    SUPPORTED_DATABASE_SCHEMES,
    Config,
    Environment,
)
from eventmesh.core.config.errors import ConfigError, ConfigValidationError

__all__ = [
    "Config",
    "Environment",
    "SUPPORTED_DATABASE_SCHEMES",
    "ConfigError",
    "ConfigValidationError",
]
