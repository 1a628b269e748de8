"""Logging configuration shared by the ZPM command line and the API."""
import logging
import os
import sys
from typing import Optional

DEFAULT_LEVEL = "WARNING"


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure root logging.

    Args:
        level: Logging level name. Falls back to ZPM_LOG_LEVEL, then WARNING.
        log_file: Optional path to a log file. If None, logs go to stderr so
            that program output on stdout is left untouched.
    """
    level = (level or os.environ.get("ZPM_LOG_LEVEL") or DEFAULT_LEVEL).upper()
    numeric_level = getattr(logging, level, logging.WARNING)

    config = {
        'level': numeric_level,
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    }

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        config['filename'] = log_file
    else:
        config['stream'] = sys.stderr

    logging.basicConfig(**config)
    logging.getLogger(__name__).debug("Logging initialized at %s level", level)
