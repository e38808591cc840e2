import logging
import os
from typing import Optional

import colorlog

LOGGER_NAME = "schedule-relay"

_LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "bold_red",
    "CRITICAL": "bold_red,bg_white",
}


class RelayFormatter(colorlog.ColoredFormatter):
    """Colored single-line records; ERROR and above also show the line number."""

    def __init__(self):
        super().__init__(
            "%(log_color)s%(asctime)s %(levelname)-8s %(filename)s%(location)s: %(message)s",
            log_colors=_LOG_COLORS,
        )

    def format(self, record: logging.LogRecord) -> str:
        record.location = f":{record.lineno}" if record.levelno >= logging.ERROR else ""
        return super().format(record)


def get_relay_logger(level: Optional[str] = None) -> logging.Logger:
    """Return the service logger, attaching the console handler on first use.

    ``level`` defaults to ``LOG_LEVEL`` (INFO when unset or unknown).
    """
    level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level, logging.INFO))
    logger.propagate = False
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(RelayFormatter())
        logger.addHandler(handler)
    return logger


relay_logging = get_relay_logger()
