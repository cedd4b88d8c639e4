"""Change notifications and subscription bookkeeping.

Pure domain logic shared by every change-feed adapter: the notification
value type, the subscription handle, and the per-table relevance policy.
"""

import logging
import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
ALL_EVENTS = "*"

CHANGE_KINDS = (INSERT, UPDATE, DELETE)
logger = logging.getLogger(__name__)

SUBSCRIBABLE_EVENTS = CHANGE_KINDS + (ALL_EVENTS,)


@dataclass(frozen=True)
class ChangeEvent:
    """A push notification that some row of a table changed.

    ``record`` may be empty; consumers must not rely on it carrying the new row.
    """

    kind: str  # INSERT | UPDATE | DELETE
    table: str
    schema: str = "public"
    record: Optional[Dict[str, Any]] = None
    old_record: Optional[Dict[str, Any]] = None
    commit_timestamp: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ChangeEvent":
        """Decode the ``data`` object of a realtime ``postgres_changes`` message."""
        kind = str(data.get("type") or data.get("eventType") or "").upper()
        return cls(
            kind=kind,
            table=data.get("table", ""),
            schema=data.get("schema", "public"),
            record=data.get("record") or data.get("new") or None,
            old_record=data.get("old_record") or data.get("old") or None,
            commit_timestamp=data.get("commit_timestamp"),
        )


ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]
DropCallback = Callable[[str], None]


def new_subscription_id(table: str, event: str) -> str:
    """``<table>_<event>_<millis>_<random9>``, unique per registration."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{table}_{event}_{int(time.time() * 1000)}_{suffix}"


@dataclass(eq=False)
class Subscription:
    """Handle for one registration on a change feed."""

    table: str
    event: str
    callback: ChangeCallback
    schema: str = "public"
    subscription_id: str = ""
    active: bool = True
    # called with a reason when the feed loses the channel on its own
    on_drop: Optional[DropCallback] = None

    def __post_init__(self):
        if self.event not in SUBSCRIBABLE_EVENTS:
            raise ValueError(f"Unsupported change event: {self.event!r}")
        if not self.subscription_id:
            self.subscription_id = new_subscription_id(self.table, self.event)

    def matches(self, change: ChangeEvent) -> bool:
        if not self.active or change.table != self.table:
            return False
        return self.event == ALL_EVENTS or self.event == change.kind

    def drop(self, reason: str) -> None:
        """Deactivate after a channel loss the owner did not ask for.

        ``on_drop`` fires once; a handle already released is left alone.
        """
        if not self.active:
            return
        self.active = False
        logger.warning("Subscription %s dropped: %s", self.subscription_id, reason)
        if self.on_drop is None:
            return
        try:
            self.on_drop(reason)
        except Exception:
            logger.exception("Drop callback for %s failed", self.subscription_id)


@dataclass
class RelevancePolicy:
    """Per-table, per-event switch deciding which changes reach subscribers.

    Tables or events missing from ``rules`` are relevant.
    """

    rules: Dict[str, Dict[str, bool]] = field(default_factory=dict)

    def is_relevant(self, table: str, kind: str) -> bool:
        table_rules = self.rules.get(table)
        if not table_rules:
            return True
        return bool(table_rules.get(kind, True))
