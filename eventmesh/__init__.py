"""
eventmesh: dual-channel event system for dashboard widgets.

- `eventmesh.core.event`: in-process live event bus with wildcard routing
- `eventmesh.modules.event_graph`: durable, graph-linked documentable events
"""

__version__ = "0.1.0"
