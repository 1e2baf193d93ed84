"""Logging configuration for command-line entry points."""

from __future__ import annotations

import logging
import sys

from podcast_deploy.core.settings import settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Attach a stdout handler to the root logger once and apply the level."""
    root_logger = logging.getLogger()
    root_logger.setLevel((level or settings.log_level).upper())

    has_console_handler = any(
        isinstance(handler, logging.StreamHandler) and handler.stream is sys.stdout
        for handler in root_logger.handlers
    )
    if not has_console_handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

    # Transport libraries are chatty at INFO.
    logging.getLogger("paramiko").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("smbprotocol").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
