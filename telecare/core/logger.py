import logging
import sys

from telecare.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def setup_logging(level: str | None = None) -> logging.Logger:
    """
    Configure the root ``telecare`` logger once per process.

    Component loggers (``telecare.scheduler``, ``telecare.repositories`` ...)
    are children of it and share its stdout handler.
    """
    logger = logging.getLogger("telecare")
    logger.setLevel(level or settings.LOG_LEVEL)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger

def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"telecare.{component}")

logger = setup_logging()
