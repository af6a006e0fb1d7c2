"""Logging configuration helpers for the assessment service."""

from __future__ import annotations

import logging
from logging import Logger

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO", fmt: str = _DEFAULT_FORMAT) -> Logger:
    """Configure basic logging for the application and return the package logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
    )
    return logging.getLogger("assessment_app")
