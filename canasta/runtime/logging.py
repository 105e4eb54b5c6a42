"""Process-wide logging for canasta.

Every module logs through ``get_logger(__name__)``. All loggers hang under
the ``canasta`` namespace, which owns a single stderr handler and does not
propagate to the root logger, so embedding applications keep their own
logging setup untouched.

``CANASTA_LOG_LEVEL`` (DEBUG, INFO, WARNING, ERROR) picks the starting level;
INFO when unset or unrecognized. At DEBUG the format adds line numbers.
"""

import logging
import os
import sys

LOG_NAMESPACE = "canasta"
LOG_LEVEL_ENV = "CANASTA_LOG_LEVEL"
DEFAULT_LOG_LEVEL = logging.INFO

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
LOG_FORMAT_DEBUG = "%(levelname)s [%(name)s:%(lineno)d] %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_logging_configured = False


def _formatter(level: int) -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT_DEBUG if level == logging.DEBUG else LOG_FORMAT)


def configure_logging(level: int | None = None) -> None:
    """Attach the stderr handler to the ``canasta`` logger, once per process.

    Args:
        level: Explicit level; when None it comes from ``CANASTA_LOG_LEVEL``.
    """
    global _logging_configured

    if _logging_configured:
        return

    if level is None:
        level = _LEVELS.get(os.environ.get(LOG_LEVEL_ENV, "").upper(), DEFAULT_LOG_LEVEL)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_formatter(level))

    namespace_logger = logging.getLogger(LOG_NAMESPACE)
    namespace_logger.setLevel(level)
    namespace_logger.addHandler(handler)
    namespace_logger.propagate = False

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, placed under the ``canasta`` namespace."""
    configure_logging()

    if name == LOG_NAMESPACE or name.startswith(f"{LOG_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOG_NAMESPACE}.{name}")


def set_log_level(level: int) -> None:
    """Switch the namespace level, and the line-number format with it."""
    namespace_logger = logging.getLogger(LOG_NAMESPACE)
    namespace_logger.setLevel(level)
    for handler in namespace_logger.handlers:
        handler.setFormatter(_formatter(level))
