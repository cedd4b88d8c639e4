"""Domain data models: pure Python dataclasses."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class Message:
    """One row of the observed collection, kept exactly as the store returned it."""

    id: Any  # opaque, store-assigned
    content: str
    created_at: str  # store-assigned timestamp, passed through untouched

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Message":
        return cls(
            id=row.get("id"),
            content=row.get("content") or "",
            created_at=str(row.get("created_at") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "content": self.content, "created_at": self.created_at}


@dataclass
class SyncState:
    """Point-in-time copy of the synchronizer state handed to views."""

    items: List[Message] = field(default_factory=list)
    pending: bool = False
    last_error: Optional[str] = None
    draft: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [m.to_dict() for m in self.items],
            "pending": self.pending,
            "last_error": self.last_error,
            "draft": self.draft,
        }
