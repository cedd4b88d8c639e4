"""Tests for StoreError rendering and the domain dataclasses."""

from msgsync.domain.errors import StoreError
from msgsync.domain.models import Message, SyncState


class TestStoreError:
    def test_from_postgrest_body(self):
        err = StoreError.from_payload(
            {
                "code": "42P01",
                "details": None,
                "hint": "Check the table name",
                "message": 'relation "public.mesages" does not exist',
            },
            status=404,
        )
        assert err.code == "42P01"
        assert err.status == 404
        assert err.describe() == (
            'relation "public.mesages" does not exist (code 42P01) hint: Check the table name'
        )

    def test_from_text_body(self):
        err = StoreError.from_payload("Bad Gateway", status=502)
        assert err.describe() == "Bad Gateway (HTTP 502)"

    def test_from_empty_body(self):
        err = StoreError.from_payload(None, status=401)
        assert err.message == "HTTP 401"

    def test_str_is_description(self):
        err = StoreError("invalid api key", status=401)
        assert str(err) == "invalid api key (HTTP 401)"

    def test_is_exception(self):
        assert issubclass(StoreError, Exception)


class TestMessage:
    def test_from_row(self):
        m = Message.from_row({"id": 7, "content": "hi", "created_at": "2024-01-01T00:00:00Z"})
        assert m == Message(id=7, content="hi", created_at="2024-01-01T00:00:00Z")

    def test_from_row_missing_fields(self):
        m = Message.from_row({"id": "uuid-1"})
        assert m.content == ""
        assert m.created_at == ""

    def test_to_dict(self):
        m = Message(id=1, content="a", created_at="t")
        assert m.to_dict() == {"id": 1, "content": "a", "created_at": "t"}


class TestSyncState:
    def test_defaults(self):
        s = SyncState()
        assert s.items == []
        assert s.pending is False
        assert s.last_error is None
        assert s.draft == ""

    def test_to_dict(self):
        s = SyncState(items=[Message(id=1, content="a", created_at="t")], pending=True)
        assert s.to_dict() == {
            "items": [{"id": 1, "content": "a", "created_at": "t"}],
            "pending": True,
            "last_error": None,
            "draft": "",
        }
