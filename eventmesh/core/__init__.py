"""Core infrastructure: config, logging, exceptions, database, event bus."""
