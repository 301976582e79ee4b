"""
Centralized Logging Configuration
=================================

This module configures application-wide logging using dictConfig.
It supports a console handler plus two rotating file handlers: one
receiving every record and one receiving errors only, so failures can
be inspected without the request noise.

Design decisions:
- Use dictConfig for explicit, reproducible logging setup
- Error log sits next to the main log file (``<name>.error.log``)
- Keep a single readable line format for both console and files
"""

import logging
import logging.config
import os
from typing import Optional


def _error_log_path(log_file: str) -> str:
    root, ext = os.path.splitext(log_file)
    return f"{root}.error{ext or '.log'}"


def configure_logging(
    log_level: str = "INFO",
    log_file: str = "betting_insights.log",
    enable_file: bool = True,
) -> None:
    """
    Configure Python logging for the application.

    Args:
        log_level: Minimum level for handlers (DEBUG/INFO/WARNING/ERROR)
        log_file: Path to the combined log file
        enable_file: Whether to enable the file handlers
    """
    log_level = log_level.upper()
    handlers = ["console"] + (["file", "error_file"] if enable_file else [])

    file_handlers = {}
    if enable_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handlers = {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": log_level,
                "formatter": "standard",
                "filename": log_file,
                "maxBytes": 5 * 1024 * 1024,
                "backupCount": 3,
                "encoding": "utf-8",
            },
            "error_file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "ERROR",
                "formatter": "standard",
                "filename": _error_log_path(log_file),
                "maxBytes": 5 * 1024 * 1024,
                "backupCount": 3,
                "encoding": "utf-8",
            },
        }

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "standard",
            },
            **file_handlers,
        },
        "loggers": {
            # passlib probes the bcrypt backend version and warns noisily
            "passlib": {"level": "ERROR"},
        },
        "root": {
            "level": log_level,
            "handlers": handlers,
        },
    }

    logging.config.dictConfig(logging_config)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a named logger (or the root logger).

    Args:
        name: Logger name; None returns root logger

    Returns:
        logging.Logger: Configured logger
    """
    return logging.getLogger(name)
