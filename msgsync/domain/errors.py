"""Error taxonomy for the message store collaborator."""

from typing import Any, Mapping, Optional


class StoreError(Exception):
    """Any failure reported by the hosted data store.

    Covers connectivity, authorization, query/validation and constraint
    errors alike. Adapters raise nothing else for collaborator failures.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.status = status

    @classmethod
    def from_payload(cls, payload: Any, status: Optional[int] = None) -> "StoreError":
        """Build from a PostgREST error body (dict) or any other response body."""
        if isinstance(payload, Mapping):
            message = payload.get("message") or payload.get("error") or str(dict(payload))
            code = payload.get("code")
            return cls(
                str(message),
                code=str(code) if code is not None else None,
                details=payload.get("details"),
                hint=payload.get("hint"),
                status=status,
            )
        text = str(payload).strip() if payload is not None else ""
        if not text:
            text = f"HTTP {status}" if status is not None else "unknown store error"
        return cls(text, status=status)

    def describe(self) -> str:
        """One-line, human-readable rendering."""
        parts = [self.message]
        if self.code:
            parts.append(f"(code {self.code})")
        elif self.status is not None:
            parts.append(f"(HTTP {self.status})")
        if self.hint:
            parts.append(f"hint: {self.hint}")
        return " ".join(parts)

    def __str__(self) -> str:
        return self.describe()
