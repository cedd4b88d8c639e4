"""In-process message store implementing MessageStorePort and ChangeFeedPort.

Used for local demos (``MSGSYNC_BACKEND=memory``) and tests. Other writers
can be simulated with ``update``/``delete``; failures with ``fail_next_*``.
"""

import asyncio
import inspect
import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from msgsync.domain.changes import (
    ALL_EVENTS,
    DELETE,
    INSERT,
    UPDATE,
    ChangeCallback,
    ChangeEvent,
    DropCallback,
    RelevancePolicy,
    Subscription,
)
from msgsync.domain.errors import StoreError
from msgsync.domain.models import Message

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryMessageStore:
    """A single-table store living in this process."""

    def __init__(
        self,
        table: str = "messages",
        relevance: Optional[RelevancePolicy] = None,
    ):
        self.table = table
        self._relevance = relevance or RelevancePolicy()
        self._rows: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self._subscriptions: List[Subscription] = []
        self._callback_tasks = set()
        self._fetch_failures: List[StoreError] = []
        self._insert_failures: List[StoreError] = []
        self.fetch_calls = 0
        self.insert_calls = 0

    # ── fault injection ────────────────────────────────────

    def fail_next_fetch(self, error: Optional[StoreError] = None) -> None:
        self._fetch_failures.append(error or StoreError("simulated fetch failure"))

    def fail_next_insert(self, error: Optional[StoreError] = None) -> None:
        self._insert_failures.append(error or StoreError("simulated insert failure"))

    # ── MessageStorePort ───────────────────────────────────

    async def fetch_all(self) -> List[Message]:
        self.fetch_calls += 1
        if self._fetch_failures:
            raise self._fetch_failures.pop(0)
        rows = sorted(
            self._rows.values(),
            key=lambda r: (r["created_at"], r["id"]),
            reverse=True,
        )
        return [Message.from_row(r) for r in rows]

    async def insert_one(self, content: str) -> None:
        self.insert_calls += 1
        if self._insert_failures:
            raise self._insert_failures.pop(0)
        if not content or not content.strip():
            raise StoreError(
                'new row violates check constraint "messages_content_check"', code="23514"
            )
        row = {"id": next(self._ids), "content": content, "created_at": _now()}
        self._rows[row["id"]] = row
        self._publish(ChangeEvent(kind=INSERT, table=self.table, record=dict(row)))

    # ── other writers ──────────────────────────────────────

    def update(self, row_id: int, content: str) -> None:
        if row_id not in self._rows:
            raise StoreError(f"row {row_id} not found", status=404)
        old = dict(self._rows[row_id])
        self._rows[row_id]["content"] = content
        self._publish(
            ChangeEvent(kind=UPDATE, table=self.table, record=dict(self._rows[row_id]), old_record=old)
        )

    def delete(self, row_id: int) -> None:
        if row_id not in self._rows:
            raise StoreError(f"row {row_id} not found", status=404)
        old = self._rows.pop(row_id)
        self._publish(ChangeEvent(kind=DELETE, table=self.table, old_record=old))

    # ── ChangeFeedPort ─────────────────────────────────────

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions)

    async def subscribe(
        self,
        table: str,
        on_change: ChangeCallback,
        event: str = ALL_EVENTS,
        on_drop: Optional[DropCallback] = None,
    ) -> Subscription:
        subscription = Subscription(
            table=table, event=event, callback=on_change, on_drop=on_drop
        )
        self._subscriptions.append(subscription)
        logger.debug("In-memory subscription %s registered", subscription.subscription_id)
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    async def unsubscribe_all(self) -> None:
        for subscription in self._subscriptions:
            subscription.active = False
        self._subscriptions.clear()

    async def close(self) -> None:
        await self.unsubscribe_all()

    def drop_subscriptions(self, reason: str = "simulated feed loss") -> None:
        """Lose every channel without an unsubscribe, as a dropped socket would."""
        dropped, self._subscriptions = self._subscriptions, []
        for subscription in dropped:
            subscription.drop(reason)

    def _publish(self, change: ChangeEvent) -> None:
        if not self._relevance.is_relevant(change.table, change.kind):
            return
        for subscription in list(self._subscriptions):
            if not subscription.matches(change):
                continue
            try:
                result = subscription.callback(change)
            except Exception:
                logger.exception("Change callback for %s failed", subscription.subscription_id)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._callback_tasks.add(task)
                task.add_done_callback(self._callback_tasks.discard)
