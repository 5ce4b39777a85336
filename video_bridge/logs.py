"""
Logging setup.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from yolo_det.errors import Status

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_PACKAGES = ("yolo_det", "video_bridge")
_HANDLER_NAME = "video_bridge.console"
_FILE_HANDLER_NAME = "video_bridge.file"


def level_for_verbosity(verbosity: int) -> int:
    """0 off, 1 error, 2 warn, 3 info, 4 debug, 5+ trace (debug)."""
    if verbosity <= 0:
        return logging.CRITICAL + 10
    if verbosity == 1:
        return logging.ERROR
    if verbosity == 2:
        return logging.WARNING
    if verbosity == 3:
        return logging.INFO
    return logging.DEBUG


def _has_handler(logger: logging.Logger, name: str) -> bool:
    return any(h.get_name() == name for h in logger.handlers)


def _named(handler: logging.Handler, name: str, formatter: logging.Formatter) -> logging.Handler:
    handler.set_name(name)
    handler.setFormatter(formatter)
    return handler


def init_logging(verbosity: int = 3, log_path: Optional[str] = None) -> Status:
    """
    Attach console (and optionally file) handlers to the package loggers.

    Safe to call more than once: handlers are added once, later calls only
    change the level.
    """

    level = level_for_verbosity(verbosity)
    formatter = logging.Formatter(LOG_FORMAT)

    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

    # One handler instance is shared by both package loggers so each record is emitted once.
    console: Optional[logging.Handler] = None
    file_handler: Optional[logging.Handler] = None

    for name in _PACKAGES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        if not _has_handler(logger, _HANDLER_NAME):
            if console is None:
                console = _named(logging.StreamHandler(), _HANDLER_NAME, formatter)
            logger.addHandler(console)
        if log_path and not _has_handler(logger, _FILE_HANDLER_NAME):
            if file_handler is None:
                file_handler = _named(logging.FileHandler(log_path), _FILE_HANDLER_NAME, formatter)
            logger.addHandler(file_handler)

    return Status.OK
