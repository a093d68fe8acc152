"""
Logger factory for the accounts service.

Every named logger writes to the console and to ``logs/accounts.log``. The
handlers are created once and shared, so a single rotating file handler owns
the log file no matter how many modules ask for a logger.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DIR = os.environ.get("ACCOUNTS_LOG_DIR", os.path.join(os.getcwd(), "logs"))
LOG_LEVEL = os.environ.get("ACCOUNTS_LOG_LEVEL", "INFO").upper()

MAX_LOG_BYTES = 10_000_000
LOG_BACKUPS = 5

_handlers: list[logging.Handler] = []


def _shared_handlers() -> list[logging.Handler]:
    if _handlers:
        return _handlers

    os.makedirs(LOG_DIR, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = RotatingFileHandler(
        os.path.join(LOG_DIR, "accounts.log"),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    console_handler = logging.StreamHandler()

    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        _handlers.append(handler)
    return _handlers


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(LOG_LEVEL)
    for handler in _shared_handlers():
        logger.addHandler(handler)
    return logger
