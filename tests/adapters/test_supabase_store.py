"""Unit tests for SupabaseMessageStore."""

import asyncio
import json
from unittest.mock import patch

import aiohttp
import pytest

from msgsync.adapters.supabase.rest_store import SupabaseMessageStore
from msgsync.config import StoreConfig
from msgsync.domain.errors import StoreError
from msgsync.domain.models import Message


@pytest.fixture
def store_config():
    return StoreConfig(url="https://demo.supabase.co/", key="anon-key", table="messages")


def _mock_aiohttp_session(responses, calls=None):
    """Return a stand-in for aiohttp.ClientSession.

    responses: list of (status, body) consumed in order; body is serialized to
    JSON unless it is already a string. An Exception instance is raised instead.
    calls: optional list collecting (method, url, kwargs) per request.
    """
    call_idx = 0

    class FakeResponse:
        def __init__(self, status, body):
            self.status = status
            self._body = body

        async def text(self):
            if self._body is None:
                return ""
            if isinstance(self._body, str):
                return self._body
            return json.dumps(self._body)

        async def __aenter__(self):
            return self

        async def __aexit__(self, *args):
            pass

    class FakeSession:
        def __init__(self, *args, **kwargs):
            pass

        def request(self, method, url, **kwargs):
            nonlocal call_idx
            if calls is not None:
                calls.append((method, url, kwargs))
            item = responses[call_idx]
            call_idx += 1
            if isinstance(item, BaseException):
                raise item
            return FakeResponse(*item)

        async def __aenter__(self):
            return self

        async def __aexit__(self, *args):
            pass

    return FakeSession


class TestConfiguration:
    def test_is_configured(self, store_config):
        assert SupabaseMessageStore(store_config).is_configured is True

    def test_missing_key(self):
        store = SupabaseMessageStore(StoreConfig(url="https://demo.supabase.co"))
        assert store.is_configured is False

    def test_table_url(self, store_config):
        store = SupabaseMessageStore(store_config)
        assert store.table_url == "https://demo.supabase.co/rest/v1/messages"

    @pytest.mark.asyncio
    async def test_missing_url_fails_on_first_use(self):
        store = SupabaseMessageStore(StoreConfig())
        with pytest.raises(StoreError, match="not configured"):
            await store.fetch_all()


class TestFetchAll:
    @pytest.mark.asyncio
    async def test_success(self, store_config):
        calls = []
        rows = [
            {"id": 2, "content": "b", "created_at": "2024-01-02T00:00:00+00:00"},
            {"id": 1, "content": "a", "created_at": "2024-01-01T00:00:00+00:00"},
        ]
        session = _mock_aiohttp_session([(200, rows)], calls)
        store = SupabaseMessageStore(store_config)
        with patch("msgsync.adapters.supabase.rest_store.aiohttp.ClientSession", session):
            result = await store.fetch_all()

        assert result == [Message.from_row(r) for r in rows]
        method, url, kwargs = calls[0]
        assert method == "GET"
        assert url == "https://demo.supabase.co/rest/v1/messages"
        assert kwargs["params"] == {"select": "*", "order": "created_at.desc"}
        assert kwargs["headers"]["apikey"] == "anon-key"
        assert kwargs["headers"]["Authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_null_body_is_empty(self, store_config):
        session = _mock_aiohttp_session([(200, None)])
        store = SupabaseMessageStore(store_config)
        with patch("msgsync.adapters.supabase.rest_store.aiohttp.ClientSession", session):
            assert await store.fetch_all() == []

    @pytest.mark.asyncio
    async def test_postgrest_error(self, store_config):
        body = {"code": "42P01", "message": 'relation "public.messages" does not exist',
                "details": None, "hint": None}
        session = _mock_aiohttp_session([(404, body)])
        store = SupabaseMessageStore(store_config)
        with patch("msgsync.adapters.supabase.rest_store.aiohttp.ClientSession", session):
            with pytest.raises(StoreError) as exc:
                await store.fetch_all()
        assert exc.value.code == "42P01"
        assert exc.value.status == 404

    @pytest.mark.asyncio
    async def test_invalid_key(self, store_config):
        session = _mock_aiohttp_session([(401, {"message": "Invalid API key"})])
        store = SupabaseMessageStore(store_config)
        with patch("msgsync.adapters.supabase.rest_store.aiohttp.ClientSession", session):
            with pytest.raises(StoreError, match="Invalid API key"):
                await store.fetch_all()

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, store_config):
        session = _mock_aiohttp_session([(502, "Bad Gateway")])
        store = SupabaseMessageStore(store_config)
        with patch("msgsync.adapters.supabase.rest_store.aiohttp.ClientSession", session):
            with pytest.raises(StoreError, match="Bad Gateway"):
                await store.fetch_all()

    @pytest.mark.asyncio
    async def test_network_error(self, store_config):
        session = _mock_aiohttp_session([aiohttp.ClientConnectionError("connection refused")])
        store = SupabaseMessageStore(store_config)
        with patch("msgsync.adapters.supabase.rest_store.aiohttp.ClientSession", session):
            with pytest.raises(StoreError, match="network error"):
                await store.fetch_all()

    @pytest.mark.asyncio
    async def test_timeout(self, store_config):
        session = _mock_aiohttp_session([asyncio.TimeoutError()])
        store = SupabaseMessageStore(store_config)
        with patch("msgsync.adapters.supabase.rest_store.aiohttp.ClientSession", session):
            with pytest.raises(StoreError, match="timed out"):
                await store.fetch_all()

    @pytest.mark.asyncio
    async def test_unexpected_shape(self, store_config):
        session = _mock_aiohttp_session([(200, {"rows": []})])
        store = SupabaseMessageStore(store_config)
        with patch("msgsync.adapters.supabase.rest_store.aiohttp.ClientSession", session):
            with pytest.raises(StoreError, match="unexpected response"):
                await store.fetch_all()


class TestInsertOne:
    @pytest.mark.asyncio
    async def test_success(self, store_config):
        calls = []
        session = _mock_aiohttp_session([(201, None)], calls)
        store = SupabaseMessageStore(store_config)
        with patch("msgsync.adapters.supabase.rest_store.aiohttp.ClientSession", session):
            assert await store.insert_one("hello") is None

        method, _, kwargs = calls[0]
        assert method == "POST"
        assert kwargs["json"] == {"content": "hello"}
        assert kwargs["headers"]["Prefer"] == "return=minimal"

    @pytest.mark.asyncio
    async def test_constraint_violation(self, store_config):
        body = {"code": "23514", "message": 'new row violates check constraint "content_not_blank"',
                "details": None, "hint": None}
        session = _mock_aiohttp_session([(400, body)])
        store = SupabaseMessageStore(store_config)
        with patch("msgsync.adapters.supabase.rest_store.aiohttp.ClientSession", session):
            with pytest.raises(StoreError) as exc:
                await store.insert_one("x")
        assert "check constraint" in exc.value.message
        assert exc.value.code == "23514"

    def test_custom_schema_headers(self):
        store = SupabaseMessageStore(
            StoreConfig(url="https://demo.supabase.co", key="k", schema="chat")
        )
        headers = store._headers()
        assert headers["Accept-Profile"] == "chat"
        assert headers["Content-Profile"] == "chat"
