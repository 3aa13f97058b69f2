"""Verbosity-controlled logging for richtree.

Verbosity 1 (CHANGES) reports what population did to references, verbosity 2
(CHECKS) adds converter and hook dispatch decisions, verbosity 3 is DEBUG.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

CHANGES_LEVEL = 25  # between INFO and WARNING
CHECKS_LEVEL = 15  # between DEBUG and INFO

logging.addLevelName(CHANGES_LEVEL, "CHANGES")
logging.addLevelName(CHECKS_LEVEL, "CHECKS")

VERBOSITY_SILENT = 0
VERBOSITY_CHANGES = 1
VERBOSITY_CHECKS = 2
VERBOSITY_DEBUG = 3

# Index is the verbosity
_VERBOSITY_LEVELS = (logging.ERROR, CHANGES_LEVEL, CHECKS_LEVEL, logging.DEBUG)

LOGGER_NAME = "richtree"


class RichTreeLogger(logging.Logger):
    """Logger with one method per verbosity level.

    - changes(): references hydrated, or kept as ids because they did not resolve
    - checks(): converter and population hook dispatch
    - debug(): store fetches and everything else
    """

    def changes(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(CHANGES_LEVEL):
            self._log(CHANGES_LEVEL, msg, args, **kwargs)

    def checks(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(CHECKS_LEVEL):
            self._log(CHECKS_LEVEL, msg, args, **kwargs)

    def hydrated(self, collection: str, doc_id: Any, remaining_depth: int) -> None:
        """Report a reference replaced by its target document."""
        self.changes(f"Hydrated {collection}/{doc_id} (remaining depth {remaining_depth})")

    def degraded(self, collection: str, doc_id: Any, error: BaseException) -> None:
        """Report a reference kept as a bare id because its target could not be read."""
        self.changes(
            f"Reference {collection}/{doc_id} not resolved ({type(error).__name__}), keeping id"
        )


def get_logger() -> RichTreeLogger:
    """Return the shared richtree logger.

    The custom logger class is installed only for the duration of the lookup
    so that other libraries' loggers are unaffected.
    """
    logging.setLoggerClass(RichTreeLogger)
    try:
        logger = logging.getLogger(LOGGER_NAME)
    finally:
        logging.setLoggerClass(logging.Logger)
    assert isinstance(logger, RichTreeLogger)
    return logger


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Send richtree messages up to ``verbosity`` to ``stream`` (stderr by default).

    Safe to call repeatedly; each call replaces the previous handler.
    """
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(_VERBOSITY_LEVELS[max(0, min(verbosity, VERBOSITY_DEBUG))])

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    """Drop handlers and return to errors-only, propagating to the root logger."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.ERROR)
    logger.propagate = True


def changes_enabled() -> bool:
    return get_logger().isEnabledFor(CHANGES_LEVEL)


def checks_enabled() -> bool:
    return get_logger().isEnabledFor(CHECKS_LEVEL)
