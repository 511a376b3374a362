"""Logging setup shared by the CLI and the HTTP API."""

import logging
import os
from typing import Optional, Union

from . import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured = False


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    global _configured
    if level is None:
        level = os.environ.get(config.LOG_LEVEL_ENV, config.DEFAULT_LOG_LEVEL)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger("ethicsgate")
    root.setLevel(level)
    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.propagate = False
        _configured = True
