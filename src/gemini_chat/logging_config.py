"""Loguru as the single logging backend.

The controllers and adapters log through ``loguru.logger`` directly.  Third
party libraries (uvicorn, httpx, the Google clients) use the stdlib, so their
records are forwarded to loguru by ``InterceptHandler``.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

# Libraries that attach their own handlers and must be re-pointed explicitly.
_LIBRARY_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "fastapi")

# Chatty at DEBUG; kept at WARNING unless the app itself runs at DEBUG.
_NOISY_LOGGERS = ("httpx", "httpcore", "google.auth", "google.api_core", "grpc", "google_genai")

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru, keeping the original call site."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(*, level: str = "INFO", json: bool = False) -> None:
    """Replace loguru's default sink and route stdlib logging into it.

    Args:
        level: Minimum level for the stderr sink.
        json: Emit one serialized JSON object per record instead of coloured text.
    """
    level = level.upper()
    if json:
        sink = {"sink": sys.stderr, "level": level, "serialize": True}
    else:
        sink = {"sink": sys.stderr, "level": level, "format": _CONSOLE_FORMAT, "colorize": True}
    logger.configure(handlers=[sink])

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _LIBRARY_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.handlers = []
        library_logger.propagate = True

    quiet = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
