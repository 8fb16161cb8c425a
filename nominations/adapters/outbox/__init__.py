"""Outbox adapters - Deferred notification dispatch."""

from .memory import InMemoryOutbox

__all__ = ["InMemoryOutbox"]
