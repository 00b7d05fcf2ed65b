"""
Logging configuration shared by the engines and the UI.

Usage:
    from logs import setup_logging, get_logger

    # once, at startup (app.py or a CLI demo)
    setup_logging(level="DEBUG", console=True)

    # in any module
    logger = get_logger(__name__)
    logger.debug("Some debug message")
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER = "stepviz"
LOG_LEVEL_ENV = "STEPVIZ_LOG_LEVEL"

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[str] = None,
    console: bool = False,
) -> logging.Logger:
    """
    Configure the project logger.

    Args:
        level: Log level name ('DEBUG', 'INFO', 'WARNING', ...).
        log_file: Optional path; records are appended there as well.
        console: If True, also log to stderr.
    Returns:
        The configured project logger.
    """
    numeric_level = getattr(logging, str(level).upper(), logging.WARNING)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(numeric_level)
    # Streamlit reruns the script on every interaction.
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    formatter = logging.Formatter(_FORMAT)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child of the project logger for ``name``."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
