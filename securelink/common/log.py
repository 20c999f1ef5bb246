"""
Logging setup for the securelink server process.

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
installed once by the entry point through ``configure_logging``.
"""

import json
import logging
import sys
import time
from typing import Optional, Union


PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line with UTC timestamps."""

    converter = time.gmtime

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%SZ")

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: Union[str, int] = "INFO",
                      json_format: bool = False,
                      logger_name: Optional[str] = None) -> logging.Logger:
    """
    Install a stdout handler on the given logger (root by default).

    Calling it again replaces the handler installed by a previous call
    instead of stacking a second one.
    """
    logger = logging.getLogger(logger_name)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_securelink", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler._securelink = True
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    logger.addHandler(handler)

    # keep aiohttp per-request access lines out of INFO output
    logging.getLogger("aiohttp.access").setLevel(max(level, logging.WARNING))

    return logger
