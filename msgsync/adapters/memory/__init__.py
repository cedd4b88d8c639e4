"""In-process adapters."""

from msgsync.adapters.memory.store import InMemoryMessageStore

__all__ = ["InMemoryMessageStore"]
