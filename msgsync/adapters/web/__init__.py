"""Web view: FastAPI routes over the message list synchronizer."""

from msgsync.adapters.web.server import build_adapters, create_app

__all__ = ["build_adapters", "create_app"]
