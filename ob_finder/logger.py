"""
Logging for the library modules.
Library code only asks for loggers; entry points call setup_logging to
attach console output and a rotating log file under config.LOG_DIR.
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from . import config

ROOT_LOGGER_NAME = "ob_finder"


def setup_logging(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Create and return the configured parent logger."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

    if logger.handlers:
        return logger

    fmt = logging.Formatter(
        "[%(asctime)s] %(levelname)-8s %(name)-24s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(fmt)
    logger.addHandler(console)

    try:
        os.makedirs(config.LOG_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(config.LOG_DIR, f"{name}.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"File logging disabled: {e}")

    return logger


def get_logger(module: str) -> logging.Logger:
    """Return a child logger for *module*. Handlers are left to setup_logging."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{module}")
