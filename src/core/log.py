"""Logging configuration.

Modules log through ``logging.getLogger(__name__)`` and pass structured
context with ``extra=``. Entry points (CLI, API) call ``configure_logging``
once.
"""

from __future__ import annotations

import logging
import sys

NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "chromadb", "openai", "anthropic")


def configure_logging(level: str = "INFO") -> None:
    """Install a single stderr handler with ISO timestamps on the root logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root_logger.setLevel(level.upper())
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
