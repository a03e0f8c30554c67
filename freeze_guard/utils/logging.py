"""Logging configuration."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from freeze_guard.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def setup_logging(level: str | None = None, log_file: str | None = None):
    """Configure the root logger once.

    Always logs to the console; also writes a rotating file when ``log_file``
    (or ``FG_LOG_FILE``) is set. Repeated calls only adjust the level.
    """
    global _configured

    numeric_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    if _configured:
        return

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_path = log_file if log_file is not None else settings.log_file
    if log_path:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
