"""
Logging utilities.

Run metadata and terminal outcomes go through the standard ``logging``
module; handlers write to stderr because stdout carries the token stream.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: Optional[str] = "outofcontext",
    log_file: Optional[Union[str, Path]] = None,
    log_level: Union[str, int] = logging.INFO,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Configure and return a logger with a stderr handler and an optional file handler.

    Args:
        name: Logger name; the package logger by default so library modules
              using ``logging.getLogger(__name__)`` inherit the handlers.
        log_file: Optional path that also receives every record. Parent
                  directories are created.
        log_level: Minimum level, as a name ("INFO") or number.
        format_string: Optional custom format; defaults to ``DEFAULT_FORMAT``.

    Returns:
        The configured `logging.Logger` instance.
    """
    if isinstance(log_level, str):
        log_level = log_level.upper()
    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Clear existing handlers to prevent duplicate messages if called multiple times.
    logger.handlers = []
    logger.propagate = False

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
