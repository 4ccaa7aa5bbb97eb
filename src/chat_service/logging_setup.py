"""
Console logging for the chat service.

Every module logs through ``logging.getLogger("chat_service.<module>")``;
this installs a single stdout handler on the ``chat_service`` logger.
"""
from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER = "chat_service"


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper())
    logger.propagate = False

    # Clear any existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)
    return logger


def mask_key(api_key: str, visible: int = 8) -> str:
    return api_key[: min(visible, len(api_key))] + "..."
