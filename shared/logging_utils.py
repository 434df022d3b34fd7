from __future__ import annotations

import logging
import sys
from typing import Any

_ROOT = "mediagate"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(f"{_ROOT}.{name}" if name else _ROOT)


def configure_logging(level: str = "INFO") -> None:
    # stdout carries protocol frames, so everything goes to stderr
    logger = logging.getLogger(_ROOT)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(getattr(h, "_mediagate", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._mediagate = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.propagate = False


def log(logger: logging.Logger, level: int, message: str, **dimensions: Any) -> None:
    try:
        logger.log(level, message if not dimensions else f"{message} | {dimensions}", extra={"custom_dimensions": dimensions})
    except (TypeError, ValueError):
        logger.log(level, f"{message} | {dimensions}")


def info(logger: logging.Logger, message: str, **dimensions: Any) -> None:
    log(logger, logging.INFO, message, **dimensions)


def warning(logger: logging.Logger, message: str, **dimensions: Any) -> None:
    log(logger, logging.WARNING, message, **dimensions)


def error(logger: logging.Logger, message: str, **dimensions: Any) -> None:
    log(logger, logging.ERROR, message, **dimensions)
