"""FastAPI application factory and adapter wiring."""

import logging
from contextlib import asynccontextmanager
from typing import Optional, Tuple

from fastapi import FastAPI

from msgsync.adapters.memory.store import InMemoryMessageStore
from msgsync.adapters.supabase.realtime import SupabaseRealtimeFeed
from msgsync.adapters.supabase.rest_store import SupabaseMessageStore
from msgsync.adapters.web.routes import router
from msgsync.config import AppConfig
from msgsync.domain.changes import RelevancePolicy
from msgsync.domain.synchronizer import MessageListSynchronizer
from msgsync.ports.outbound import ChangeFeedPort, MessageStorePort

logger = logging.getLogger(__name__)


def build_adapters(config: AppConfig) -> Tuple[MessageStorePort, ChangeFeedPort]:
    """Create the store and change feed selected by ``config.backend``."""
    relevance = RelevancePolicy(dict(config.store.relevance))
    if config.backend == "memory":
        store = InMemoryMessageStore(table=config.store.table, relevance=relevance)
        return store, store
    return (
        SupabaseMessageStore(config.store),
        SupabaseRealtimeFeed(config.store, relevance=relevance),
    )


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[MessageStorePort] = None,
    feed: Optional[ChangeFeedPort] = None,
) -> FastAPI:
    """Build the web view around one synchronizer.

    The synchronizer is mounted (subscribed + initial refresh) on startup and
    unmounted on shutdown, when the feed is closed as well.
    """
    config = config or AppConfig.from_env()
    if store is None:
        store, default_feed = build_adapters(config)
        feed = feed or default_feed

    synchronizer = MessageListSynchronizer(store, feed, table=config.store.table)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Message board starting (backend=%s, table=%s)",
                    config.backend, config.store.table)
        await synchronizer.mount()
        try:
            yield
        finally:
            await synchronizer.unmount()
            if feed is not None:
                await feed.close()
            logger.info("Message board stopped")

    app = FastAPI(title="Messages", version="0.1.0", lifespan=lifespan)
    app.state.config = config
    app.state.synchronizer = synchronizer
    app.include_router(router)
    return app
