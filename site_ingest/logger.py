# === FILE: site_ingest/logger.py ===
"""Logging for **SiteIngest**.

Every module logs through the ``SiteIngest`` logger::

    from site_ingest.logger import logger
    logger.info("Crawl started")

The CLI calls :func:`init_logging` once its options are parsed; a rotating log
file is added when ``log_file`` is given.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteIngest"

_LevelT = Union[int, str]


def _handlers(fmt: str, log_file: str | Path | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(
            RotatingFileHandler(str(log_file), maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
        )
    for handler in handlers:
        handler.setFormatter(logging.Formatter(fmt))
    return handlers


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Replace the handlers of the project logger and apply *level*."""
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)
    for old in list(lg.handlers):
        lg.removeHandler(old)
        old.close()
    for handler in _handlers(log_format, log_file):
        lg.addHandler(handler)
    lg.propagate = False
    return lg


logger: logging.Logger = init_logging()

__all__ = ["logger", "init_logging", "LOGGER_NAME", "DEFAULT_FORMAT"]
