"""Logging setup shared by the server entry point."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_HANDLER_NAME = "msgsync-stderr"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stderr handler to the ``msgsync`` logger.

    Calling it again only updates the level.
    """
    logger = logging.getLogger("msgsync")
    numeric = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logger.setLevel(numeric)

    if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
