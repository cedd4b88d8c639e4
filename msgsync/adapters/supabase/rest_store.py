"""Supabase (PostgREST) message store using aiohttp."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from msgsync.config import StoreConfig
from msgsync.domain.errors import StoreError
from msgsync.domain.models import Message

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"


class SupabaseMessageStore:
    """Async PostgREST client for one table (implements MessageStorePort)."""

    def __init__(self, config: StoreConfig):
        self._config = config

    @property
    def is_configured(self) -> bool:
        return bool(self._config.url and self._config.key)

    @property
    def table_url(self) -> str:
        return f"{self._config.url.rstrip('/')}{REST_PATH}/{self._config.table}"

    def _headers(self) -> Dict[str, str]:
        key = self._config.key
        headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Accept": "application/json",
        }
        if self._config.schema and self._config.schema != "public":
            headers["Accept-Profile"] = self._config.schema
            headers["Content-Profile"] = self._config.schema
        return headers

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self._config.request_timeout)

    @staticmethod
    async def _read_body(resp) -> Any:
        text = await resp.text()
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def _request(
        self,
        method: str,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        if not self._config.url:
            raise StoreError("store URL is not configured")

        headers = self._headers()
        if extra_headers:
            headers.update(extra_headers)

        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.request(
                    method, self.table_url, params=params, json=payload, headers=headers
                ) as resp:
                    body = await self._read_body(resp)
                    if resp.status >= 400:
                        raise StoreError.from_payload(body, status=resp.status)
                    return body
        except StoreError:
            raise
        except asyncio.TimeoutError:
            raise StoreError(f"request timed out after {self._config.request_timeout:g}s")
        except (aiohttp.ClientError, ValueError) as e:
            raise StoreError(f"network error: {e}") from e

    async def fetch_all(self) -> List[Message]:
        """All rows, most recent first."""
        body = await self._request(
            "GET", params={"select": "*", "order": "created_at.desc"}
        )
        if body is None:
            return []
        if not isinstance(body, list):
            raise StoreError(f"unexpected response: {str(body)[:200]}")
        logger.debug("Fetched %d rows from %s", len(body), self._config.table)
        return [Message.from_row(row) for row in body]

    async def insert_one(self, content: str) -> None:
        await self._request(
            "POST",
            payload={"content": content},
            extra_headers={"Prefer": "return=minimal", "Content-Type": "application/json"},
        )
        logger.debug("Inserted one row into %s", self._config.table)
