"""
Logging setup.
"""

from __future__ import annotations

import logging
import os
from typing import Callable

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logging(log_path: str, log_level: str) -> None:
    level_name = str(log_level).upper()
    if level_name not in VALID_LOG_LEVELS:
        raise ValueError(f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}")

    log_dir = os.path.dirname(log_path)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    logging.basicConfig(
        level=getattr(logging, level_name),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(),
        ],
        force=True,
    )


def make_log_sink(name: str = "align_capture.ticks", level: int = logging.DEBUG) -> Callable[[str], None]:
    """
    Log sink that forwards per-tick messages to a named logger.

    Tick summaries are chatty, so they go out at DEBUG unless asked otherwise.
    """
    logger = logging.getLogger(name)

    def sink(message: str) -> None:
        logger.log(level, message)

    return sink
