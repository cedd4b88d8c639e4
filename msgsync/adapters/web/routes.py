"""Message board routes: page, submit, refresh, state and live events."""

import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from msgsync.adapters.web.page import render_page
from msgsync.domain.models import SyncState
from msgsync.domain.synchronizer import MessageListSynchronizer

router = APIRouter(tags=["Messages"])

KEEPALIVE_SECONDS = 15.0


class SubmitRequest(BaseModel):
    content: str


class MessageOut(BaseModel):
    id: Any = None
    content: str
    created_at: str


class StateResponse(BaseModel):
    items: List[MessageOut]
    pending: bool
    last_error: Optional[str] = None
    draft: str = ""

    @classmethod
    def from_state(cls, state: SyncState) -> "StateResponse":
        return cls(**state.to_dict())


def _sync(request: Request) -> MessageListSynchronizer:
    return request.app.state.synchronizer


async def state_stream(
    sync: MessageListSynchronizer,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[Dict[str, str]]:
    """Yield the current state, then one event per state transition."""
    queue: asyncio.Queue = asyncio.Queue()
    sync.add_listener(queue.put_nowait)
    try:
        yield {"event": "state", "data": json.dumps(sync.snapshot().to_dict())}
        while not await is_disconnected():
            try:
                state = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                continue
            yield {"event": "state", "data": json.dumps(state.to_dict())}
    finally:
        sync.remove_listener(queue.put_nowait)


@router.get("/", response_class=HTMLResponse)
async def index(request: Request):
    """Message board page"""
    return render_page(_sync(request).snapshot(), title=request.app.title)


@router.get("/api/messages", response_model=StateResponse)
async def get_state(request: Request):
    return StateResponse.from_state(_sync(request).snapshot())


@router.post("/messages", response_model=StateResponse)
async def submit_message(req: SubmitRequest, request: Request):
    """Submit through the shared draft, which survives a failed insert.

    The page is a single view: overlapping posts share one draft.
    """
    sync = _sync(request)
    if req.content.strip():
        sync.set_draft(req.content)
        await sync.submit()
    return StateResponse.from_state(sync.snapshot())


@router.post("/refresh", response_model=StateResponse)
async def refresh(request: Request):
    sync = _sync(request)
    await sync.refresh()
    return StateResponse.from_state(sync.snapshot())


@router.get("/api/events")
async def events(request: Request):
    """Live state updates as Server-Sent Events"""
    return EventSourceResponse(state_stream(_sync(request), request.is_disconnected))


@router.get("/healthz")
async def healthz():
    return {"status": "ok"}
