"""
Custom logging configuration.

Responsibilities:
- Setup structured logging
- Configure log levels and formats
- Output logs to console and file
"""

import logging
import os
from typing import Optional

LOGGER_NAME = "wrapstudio"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """Configures the application logger."""
    root = logging.getLogger(LOGGER_NAME)
    level = level or os.getenv("LOG_LEVEL", "INFO")
    log_file = log_file or os.getenv("LOG_FILE")

    root.setLevel(level.upper())

    if not root.handlers:
        formatter = logging.Formatter(LOG_FORMAT)

        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

        if log_file:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    return root


def get_logger(name: str) -> logging.Logger:
    """Child logger under the application namespace."""
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


logger = logging.getLogger(LOGGER_NAME)
