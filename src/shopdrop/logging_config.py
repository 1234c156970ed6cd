"""
Centralized logging configuration for shopdrop.

Every module logs through ``get_logger(__name__)``; the API server and the CLI
call ``setup_logging()`` once at startup. Output goes to stdout and, when
SHOPDROP_LOG_FILE is set, to that file as well.
"""

import logging
import sys

from .config import Settings, get_settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s"


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure the root logger.

    Args:
        settings: Settings to read level and log file from (defaults to the
            environment).
    """
    settings = settings or get_settings()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    # Reduce verbosity from external libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for a module, typically called with __name__."""
    return logging.getLogger(name)
