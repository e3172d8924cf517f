"""
Infrastructure orchestration for eventmesh.

Module Contents
---------------
**Application Context**:
    - ApplicationContext: builds the EventBus and EventGraphStore from Config
      and owns their lifecycle
    - build_backend: Config-driven store backend selection
"""

from .application_context import ApplicationContext, build_backend

__all__ = [
    "ApplicationContext",
    "build_backend",
]
