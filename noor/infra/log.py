from __future__ import annotations

import logging
import os

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the ``noor`` logger tree.

    Calling it again only adjusts the level, so importing the app twice
    (tests, reloaders) does not duplicate output.
    """
    global _configured
    logger = logging.getLogger("noor")
    logger.setLevel(level or LOG_LEVEL)
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    _configured = True
