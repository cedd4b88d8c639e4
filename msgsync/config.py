"""Configuration loaded from the environment (and a local .env file)."""

__version__ = "0.1.0"

import logging
import os
from dataclasses import dataclass, field
from typing import Dict

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ("supabase", "memory")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


def parse_ignored_events(raw: str) -> Dict[str, Dict[str, bool]]:
    """``"messages:DELETE, audit:*"`` -> relevance rules switching those off."""
    rules: Dict[str, Dict[str, bool]] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        table, _, event = item.partition(":")
        table, event = table.strip(), (event.strip().upper() or "*")
        if not table:
            continue
        kinds = ("INSERT", "UPDATE", "DELETE") if event == "*" else (event,)
        for kind in kinds:
            rules.setdefault(table, {})[kind] = False
    return rules


@dataclass
class StoreConfig:
    """Hosted store credentials. Passed through as-is, never validated."""

    url: str = ""
    key: str = ""
    table: str = "messages"
    schema: str = "public"
    request_timeout: float = 10.0
    heartbeat_interval: float = 25.0
    # table -> {INSERT|UPDATE|DELETE: bool}; unlisted entries are relevant
    relevance: Dict[str, Dict[str, bool]] = field(default_factory=dict)


@dataclass
class AppConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    backend: str = "supabase"
    log_level: str = "INFO"
    store: StoreConfig = field(default_factory=StoreConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create AppConfig from environment variables."""
        backend = os.getenv("MSGSYNC_BACKEND", "supabase").strip().lower()
        if backend not in SUPPORTED_BACKENDS:
            logger.warning("Unsupported MSGSYNC_BACKEND=%r, falling back to 'supabase'", backend)
            backend = "supabase"

        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            backend=backend,
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            store=StoreConfig(
                url=os.getenv("SUPABASE_URL", ""),
                key=os.getenv("SUPABASE_ANON_KEY", ""),
                table=os.getenv("MSGSYNC_TABLE", "messages"),
                schema=os.getenv("MSGSYNC_SCHEMA", "public"),
                request_timeout=_env_float("MSGSYNC_REQUEST_TIMEOUT", 10.0),
                heartbeat_interval=_env_float("MSGSYNC_HEARTBEAT_INTERVAL", 25.0),
                relevance=parse_ignored_events(os.getenv("MSGSYNC_IGNORE_EVENTS", "")),
            ),
        )
