"""Logging configuration helpers for the quiz results service."""

from __future__ import annotations

import logging
from logging import Logger


def configure_logging(level: int = logging.INFO) -> Logger:
    """Configure basic logging for the service and return the package logger."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # uvicorn installs its own handlers; keep its access log on the same level.
    logging.getLogger("uvicorn.access").setLevel(level)
    return logging.getLogger("quizroom")
