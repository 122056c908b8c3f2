import logging
import sys

from diagnostics_api.config.settings import settings


def get_logger(name: str) -> logging.Logger:
    """Return a logger object."""
    logger = logging.getLogger(name)
    logger.setLevel(settings.LOG_LEVEL)
    if not logger.handlers:
        formatter = logging.Formatter('%(asctime)s:%(name)s:%(levelname)s:%(message)s')
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
    logger.propagate = False
    return logger
