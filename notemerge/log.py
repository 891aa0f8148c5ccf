"""Logging helpers for notemerge.

Every module obtains its logger through :func:`get_logger` so that log
records share the ``notemerge.`` namespace. Handlers are configured once by
the service entrypoint; library code never installs handlers itself.
"""

from __future__ import annotations

import logging

_ROOT_LOGGER = "notemerge"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a standard library logger under the ``notemerge.`` prefix."""
    if not (name == _ROOT_LOGGER or name.startswith(f"{_ROOT_LOGGER}.")):
        name = f"{_ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(level: str) -> None:
    """Attach a stream handler to the package logger at the given level."""
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(level)
    if not any(getattr(handler, "_notemerge", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._notemerge = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
