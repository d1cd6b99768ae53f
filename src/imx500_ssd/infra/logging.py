"""Logging configuration helpers."""

from __future__ import annotations

import logging
import logging.handlers
from typing import List

from ..config.models import LoggingConfig

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(config: LoggingConfig, log_to_file: bool = True) -> None:
    """Route every logger to a rotating log file and, optionally, the console.

    ``config.loggers`` overrides the level of individual areas, e.g. to keep
    ``tensor.decoder`` at WARNING while the rest of the pipeline logs DEBUG.
    """

    log_level = _level(config.level)
    logging.captureWarnings(True)

    handlers: List[logging.Handler] = []
    if log_to_file:
        handlers.append(_file_handler(config, log_level))
    # Never leave the root logger without a handler.
    if config.console or not handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(_build_formatter())
        handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)
    for name, level in config.loggers.items():
        logging.getLogger(name).setLevel(_level(level))


def _level(name: str) -> int:
    return getattr(logging, str(name).upper(), logging.INFO)


def _file_handler(config: LoggingConfig, log_level: int) -> logging.Handler:
    log_path = config.resolved_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        filename=log_path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(log_level)
    handler.setFormatter(_build_formatter())
    return handler


def _build_formatter() -> logging.Formatter:
    return logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
