from __future__ import annotations

import logging
import os
from typing import IO, Optional

from pythonjsonlogger import jsonlogger

from dataview.exceptions import ConfigurationError

PACKAGE_LOGGER = "dataview"
ENV_VAR = "DATAVIEW_LOG_FORMAT"

JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(funcName)s %(message)s"
PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# marks handlers installed here, so a second call replaces only those
_HANDLER_FLAG = "_dataview_handler"


def _make_formatter(format_mode: str) -> logging.Formatter:
    if format_mode == "json":
        return jsonlogger.JsonFormatter(JSON_FORMAT)
    if format_mode == "plain":
        return logging.Formatter(PLAIN_FORMAT)
    raise ConfigurationError(f"Unknown log format '{format_mode}', expected 'json' or 'plain'")


def configure_logging(
        level: int = logging.INFO,
        force_format: Optional[str] = None,
        *,
        propagate: bool = False,
        stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Attach a handler to the "dataview" package logger. The root logger and the
    handlers the host application installed are left alone.

    Format selection order:
        1) force_format argument ("json" or "plain") if provided
        2) env var DATAVIEW_LOG_FORMAT
        3) default = "json"

    Structured fields passed through `extra={...}` end up as JSON keys in json mode.

    :param propagate: also hand records to the ancestors' handlers (e.g. the host's root handler)
    :param stream: where to write, stderr by default
    :return: the configured package logger
    :raises ConfigurationError: on an unknown format
    """
    format_mode = (force_format if force_format is not None else os.getenv(ENV_VAR, "json")).lower()
    formatter = _make_formatter(format_mode)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.propagate = propagate

    for old in [h for h in logger.handlers if getattr(h, _HANDLER_FLAG, False)]:
        logger.removeHandler(old)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    setattr(handler, _HANDLER_FLAG, True)
    logger.addHandler(handler)

    return logger
