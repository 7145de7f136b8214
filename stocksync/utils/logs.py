"""Logging setup for job runs."""

from __future__ import annotations

import logging
import pathlib
from logging.handlers import TimedRotatingFileHandler

from stocksync.config import Settings
from stocksync.utils.dates import format_timestamp, now_in_tz

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> pathlib.Path | None:
    """Attach console and (optionally) daily-rotating file handlers.

    Returns the log file path when file logging is enabled.
    """
    root = logging.getLogger()
    if not settings.logging_enabled:
        root.handlers.clear()
        root.addHandler(logging.NullHandler())
        return None

    root.setLevel(settings.log_level)
    formatter = logging.Formatter(LOG_FORMAT)
    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler) for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

    if not settings.log_dir:
        return None
    log_dir = pathlib.Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"stocksync-{format_timestamp(now_in_tz())}.log"
    file_handler = TimedRotatingFileHandler(log_path, when="midnight", encoding="utf-8")
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    return log_path
