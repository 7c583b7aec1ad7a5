"""Simple logging wrapper for finagent."""

import logging
import sys
from typing import Optional

_default_level = logging.INFO


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Return a configured logger with the given name.

    Logging format:  [LEVEL]  logger_name — message

    Parameters
    ----------
    name : str
        Typically __name__ of the calling module, or ``agent.<name>`` for
        per-agent loggers.
    level : int, optional
        Logging level (default: the process-wide level, INFO unless changed
        with :func:`set_level`).

    Returns
    -------
    logging.Logger
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            fmt="%(asctime)s  [%(levelname)s]  %(name)s — %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False

    logger.setLevel(_default_level if level is None else level)
    return logger


def set_level(level: int) -> None:
    """
    Change the level of every finagent logger, existing and future.

    The console front end uses this to keep INFO chatter out of the chat
    transcript unless ``--verbose`` is passed.
    """
    global _default_level
    _default_level = level
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.split(".")[0] in ("finagent", "agent"):
            logger.setLevel(level)
