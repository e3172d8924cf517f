"""Feature modules built on the eventmesh core."""
