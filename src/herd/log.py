"""
Logging configuration for herd.
"""
import logging
import sys
from pathlib import Path
from typing import Optional


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[Path] = None,
    console: bool = True,
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """
    Setup logging configuration for herd.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        console: Whether to log to stderr
        handler: Extra handler to attach, e.g. Textual's TextualHandler

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("herd")
    level_value = getattr(logging, level.upper(), None)
    if not isinstance(level_value, int):
        raise ValueError(f"Unknown log level: {level}")
    logger.setLevel(level_value)

    # Remove existing handlers
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if handler is not None:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
