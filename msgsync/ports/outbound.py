"""Outbound ports: interfaces for the hosted data store adapters."""

from typing import List, Optional, Protocol, runtime_checkable

from msgsync.domain.changes import ALL_EVENTS, ChangeCallback, DropCallback, Subscription
from msgsync.domain.models import Message


@runtime_checkable
class MessageStorePort(Protocol):
    """Read/append access to the remote message collection.

    Implementations raise ``StoreError`` for every collaborator failure.
    """

    async def fetch_all(self) -> List[Message]: ...

    async def insert_one(self, content: str) -> None: ...


@runtime_checkable
class ChangeFeedPort(Protocol):
    """Push notifications for inserts/updates/deletes on a table.

    A channel lost without ``unsubscribe`` (socket closed, join rejected) is
    reported through ``Subscription.drop`` and ends up inactive.
    """

    async def subscribe(
        self,
        table: str,
        on_change: ChangeCallback,
        event: str = ALL_EVENTS,
        on_drop: Optional[DropCallback] = None,
    ) -> Subscription: ...

    async def unsubscribe(self, subscription: Subscription) -> None: ...

    async def unsubscribe_all(self) -> None: ...

    async def close(self) -> None: ...
