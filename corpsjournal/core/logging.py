import logging
import sys

from corpsjournal.core.config import settings

_FORMAT = "[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str) -> logging.Logger:
    """Return a stdout logger for a component, configuring it on first use."""
    logger = logging.getLogger(f"corpsjournal.{name}")

    if logger.handlers:
        return logger

    logger.setLevel(settings.LOG_LEVEL.upper())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    logger.addHandler(console_handler)

    return logger
