from __future__ import annotations

import logging
import os
import sys

# Libraries that log every request or statement at INFO
_NOISY = ("httpx", "httpcore", "asyncio", "sqlalchemy.engine", "aiosqlite", "uvicorn.access")


def setup_logging(level: str | None = None) -> None:
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s :: %(message)s",
        stream=sys.stdout,
    )

    # upstream request lines stay visible when debugging the proxies
    quiet = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in _NOISY:
        logging.getLogger(name).setLevel(quiet)
