"""
Logging for the School Admin API.

Everything logs under the "school" logger (``school.api``,
``school.notifications``, ...) and writes to the console.
"""
import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER = "school"


def _level(name: str | None) -> int:
    name = (name or os.getenv("LOG_LEVEL", "INFO")).upper()
    return logging.getLevelName(name) if isinstance(logging.getLevelName(name), int) else logging.INFO


def setup_logging(level: str | None = None) -> logging.Logger:
    """Safe to call more than once; later calls only change the level."""
    lvl = _level(level)
    logging.basicConfig(level=lvl, format=LOG_FORMAT)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(lvl)
    console = next((h for h in logger.handlers if h.get_name() == ROOT_LOGGER), None)
    if console is None:
        console = logging.StreamHandler()
        console.set_name(ROOT_LOGGER)
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console)
    console.setLevel(lvl)
    logger.propagate = False

    # uvicorn's access log follows the API level
    logging.getLogger("uvicorn.access").setLevel(lvl)
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger(ROOT_LOGGER)
    return base.getChild(name) if name else base
