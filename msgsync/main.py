"""Server entry point."""

import uvicorn

from msgsync.adapters.web.server import create_app
from msgsync.config import AppConfig
from msgsync.logging_config import configure_logging

UVICORN_LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")


def main() -> int:
    config = AppConfig.from_env()
    configure_logging(config.log_level)
    app = create_app(config)
    log_level = config.log_level.lower()
    if log_level not in UVICORN_LOG_LEVELS:
        log_level = "info"
    uvicorn.run(app, host=config.host, port=config.port, log_level=log_level)
    return 0
