"""Port interfaces (Hexagonal Architecture)."""

from msgsync.ports.outbound import ChangeFeedPort, MessageStorePort

__all__ = [
    "ChangeFeedPort",
    "MessageStorePort",
]
