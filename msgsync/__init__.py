"""msgsync: live message board over a hosted database table."""

from msgsync.config import AppConfig, StoreConfig, __version__
from msgsync.domain.changes import ChangeEvent, RelevancePolicy, Subscription
from msgsync.domain.errors import StoreError
from msgsync.domain.models import Message, SyncState
from msgsync.domain.synchronizer import MessageListSynchronizer

__all__ = [
    "__version__",
    "AppConfig",
    "StoreConfig",
    "ChangeEvent",
    "RelevancePolicy",
    "Subscription",
    "StoreError",
    "Message",
    "SyncState",
    "MessageListSynchronizer",
]
