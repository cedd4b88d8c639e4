"""Domain layer: pure Python, no framework dependencies."""

from msgsync.domain.changes import (
    ALL_EVENTS,
    DELETE,
    INSERT,
    UPDATE,
    ChangeEvent,
    RelevancePolicy,
    Subscription,
)
from msgsync.domain.errors import StoreError
from msgsync.domain.models import Message, SyncState
from msgsync.domain.synchronizer import MessageListSynchronizer

__all__ = [
    "ALL_EVENTS",
    "DELETE",
    "INSERT",
    "UPDATE",
    "ChangeEvent",
    "RelevancePolicy",
    "Subscription",
    "StoreError",
    "Message",
    "SyncState",
    "MessageListSynchronizer",
]
