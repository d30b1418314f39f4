import logging
import os
from config import LOG_PATH

_file_handler = None


def _get_file_handler():
    global _file_handler
    if _file_handler is None:
        os.makedirs(os.path.dirname(LOG_PATH), exist_ok=True)
        _file_handler = logging.FileHandler(LOG_PATH, encoding="utf-8")
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            "%Y-%m-%d %H:%M:%S"
        )
        _file_handler.setFormatter(formatter)
    return _file_handler


def get_logger(name="hardlinker"):
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(logging.DEBUG)
        # Worker threads log concurrently; one shared handler keeps writes serialized
        logger.addHandler(_get_file_handler())
        logger.propagate = False
    return logger
