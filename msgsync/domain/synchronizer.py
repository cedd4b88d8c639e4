"""Message list synchronizer: keeps a local snapshot of a remote collection.

The local list is never patched: every refresh replaces it wholesale with
what the store returns, and every change notification triggers a refresh.
Overlapping refreshes are applied in completion order (last one wins).
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, List, Optional, Set

from msgsync.domain.changes import ChangeEvent, Subscription
from msgsync.domain.errors import StoreError
from msgsync.domain.models import Message, SyncState

if TYPE_CHECKING:
    from msgsync.ports.outbound import ChangeFeedPort, MessageStorePort

logger = logging.getLogger(__name__)

StateListener = Callable[[SyncState], None]


def describe_failure(exc: BaseException) -> str:
    if isinstance(exc, StoreError):
        return exc.describe()
    return str(exc) or type(exc).__name__


class MessageListSynchronizer:
    """Owns the in-memory message list of one mounted view."""

    def __init__(
        self,
        store: "MessageStorePort",
        feed: Optional["ChangeFeedPort"] = None,
        table: str = "messages",
    ):
        self._store = store
        self._feed = feed
        self._table = table

        self.items: List[Message] = []
        self.pending: bool = False
        self.last_error: Optional[str] = None
        self.draft: str = ""

        self._subscription: Optional[Subscription] = None
        self._generation = 0
        self._refresh_tasks: Set[asyncio.Task] = set()
        self._listeners: List[StateListener] = []

    # ── state & listeners ──────────────────────────────────

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    def snapshot(self) -> SyncState:
        return SyncState(
            items=list(self.items),
            pending=self.pending,
            last_error=self.last_error,
            draft=self.draft,
        )

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_draft(self, text: str) -> None:
        """Replace the pending input of the one view this synchronizer serves.

        The draft is not per request: a successful ``submit`` clears it even if
        another caller set it in the meantime.
        """
        self.draft = text
        self._emit()

    def _emit(self) -> None:
        if not self._listeners:
            return
        state = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener failed")

    # ── operations ─────────────────────────────────────────

    async def refresh(self) -> bool:
        """Re-read the whole collection. Returns False if the store failed."""
        self.pending = True
        self.last_error = None
        self._emit()
        try:
            rows = await self._store.fetch_all()
        except Exception as e:
            self.last_error = f"Failed to load messages: {describe_failure(e)}"
            self.pending = False
            logger.warning(self.last_error)
            self._emit()
            return False

        self.items = list(rows) if rows else []
        self.pending = False
        logger.debug("Refreshed %d messages from %s", len(self.items), self._table)
        self._emit()
        return True

    async def submit(self, content: Optional[str] = None) -> bool:
        """Insert one message, then refresh.

        Without an argument the current draft is submitted. Blank content is a
        no-op. Returns True when the insert succeeded.
        """
        text = (self.draft if content is None else content).strip()
        if not text:
            return False

        self.pending = True
        self.last_error = None
        self._emit()
        try:
            await self._store.insert_one(text)
        except Exception as e:
            self.last_error = f"Failed to send message: {describe_failure(e)}"
            self.pending = False
            logger.warning(self.last_error)
            self._emit()
            return False

        self.draft = ""
        await self.refresh()
        return True

    # ── change notifications ───────────────────────────────

    async def subscribe_to_changes(self) -> Optional[Subscription]:
        """Register for every change on the table; each one triggers a refresh.

        Only one registration exists per synchronizer. Returns None (and sets
        ``last_error``) when the feed could not be reached. If the feed later
        loses the channel, ``last_error`` says so and the next call subscribes
        again.
        """
        if self.is_subscribed:
            return self._subscription
        if self._feed is None:
            logger.info("No change feed configured; live updates disabled")
            return None

        self._generation += 1
        generation = self._generation

        def on_change(change: ChangeEvent) -> None:
            if generation != self._generation or not self.is_subscribed:
                return
            logger.debug("Change %s on %s, refreshing", change.kind, change.table)
            task = asyncio.ensure_future(self.refresh())
            self._refresh_tasks.add(task)
            task.add_done_callback(self._refresh_tasks.discard)

        def on_drop(reason: str) -> None:
            if generation != self._generation:
                return
            self._subscription = None
            self.last_error = f"Live updates disconnected: {reason}"
            logger.warning(self.last_error)
            self._emit()

        try:
            subscription = await self._feed.subscribe(self._table, on_change, on_drop=on_drop)
        except Exception as e:
            self.last_error = f"Failed to subscribe to changes: {describe_failure(e)}"
            logger.warning(self.last_error)
            self._emit()
            return None

        if not subscription.active:
            # lost before subscribe returned; on_drop has already reported it
            return None
        self._subscription = subscription
        logger.info("Subscribed to changes on %s", self._table)
        return subscription

    async def unsubscribe(self) -> None:
        """Stop refreshing on notifications and release the registration."""
        subscription, self._subscription = self._subscription, None
        self._generation += 1
        if subscription is None:
            return
        subscription.active = False
        if self._feed is not None:
            try:
                await self._feed.unsubscribe(subscription)
            except Exception as e:
                logger.warning("Failed to release subscription %s: %s",
                               subscription.subscription_id, describe_failure(e))
        logger.info("Unsubscribed from changes on %s", self._table)

    async def settle(self) -> None:
        """Wait for notification-triggered refreshes that are still in flight."""
        while self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks))

    # ── view lifecycle ─────────────────────────────────────

    async def mount(self) -> None:
        await self.subscribe_to_changes()
        subscribe_error = None if self.is_subscribed or self._feed is None else self.last_error
        if await self.refresh() and subscribe_error:
            # keep the subscription failure visible after a successful load
            self.last_error = subscribe_error
            self._emit()

    async def unmount(self) -> None:
        await self.unsubscribe()

    async def __aenter__(self) -> "MessageListSynchronizer":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.unmount()
