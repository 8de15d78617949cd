"""Console logging for the command line front-end."""

from __future__ import annotations

import logging
import sys

_PLAIN_FORMAT = "%(levelname)s %(name)s: %(message)s"
_VERBOSE_FORMAT = "%(asctime)s %(threadName)s %(levelname)s %(name)s: %(message)s"


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is at emit time."""

    def __init__(self) -> None:
        super().__init__(sys.stderr)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value) -> None:
        pass


_HANDLERS: dict[str, logging.Handler] = {}


def ensure_console_logger(
    logger: logging.Logger,
    handler_name: str,
    *,
    level: int = logging.INFO,
) -> logging.Handler:
    """Attach one named stderr handler to *logger*; later calls only retune levels.

    Debug level switches to a format carrying timestamps and thread names,
    which is what background-task traces need.
    """

    handler = _HANDLERS.get(handler_name)
    if handler is None:
        handler = next((h for h in logger.handlers if h.name == handler_name), None)
    if handler is None:
        handler = _StderrHandler()
        handler.name = handler_name
    if handler not in logger.handlers:
        logger.addHandler(handler)
    _HANDLERS[handler_name] = handler

    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_VERBOSE_FORMAT if level <= logging.DEBUG else _PLAIN_FORMAT))
    logger.setLevel(level)
    return handler
