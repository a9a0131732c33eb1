"""Logging setup for the service and CLI entry points."""
from __future__ import annotations

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "[%(name)s] %(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[str] = None,
    *,
    service_name: str = "codescope",
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the ``codescope`` logger tree.

    Logs always go to stdout; when ``log_dir`` is given they are also written
    to a rotating file named after the service and the start time.
    """
    logger = logging.getLogger("codescope")
    resolved = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(resolved)
    logger.handlers.clear()
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved)
    console_handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    if log_dir:
        output_path = Path(log_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = output_path / f"{service_name}_{timestamp}.log"
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(fmt=FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(file_handler)
        logger.info("File logging initialized: %s", log_file)

    return logger
