"""Run loggers.

The run log is the user-facing progress stream of a scrape ("Scraping
<url>", "Saved 12 items", client console output). It is separate from the
module loggers (``logging.getLogger(__name__)``) used for diagnostics.

A ``RunLogger`` wraps a stdlib logger and exposes three message kinds:

- ``msg``: progress, logged at INFO and prefixed with ``* ``
- ``alert``: client alerts, logged at WARNING and prefixed with ``! ``
- ``error``: recoverable errors, logged at ERROR and prefixed with
  ``ERROR: ``

Built-in factories (registered by ``Registry.with_builtins``):

- ``stdout``: write to standard output
- ``file``: append to ``RunConfig.log_file``
- ``none``: discard everything
"""

from __future__ import annotations

import itertools
import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pagescrape.data_types import RunConfig

RUN_LOGGER_NAME = "pagescrape.run"

_PREFIXES = {
    logging.INFO: "* ",
    logging.WARNING: "! ",
    logging.ERROR: "ERROR: ",
}

_instance_ids = itertools.count()


class RunLogFormatter(logging.Formatter):
    """Prefix each record according to its message kind."""

    def format(self, record: logging.LogRecord) -> str:
        prefix = _PREFIXES.get(record.levelno, "")
        return prefix + record.getMessage()


class RunLogger:
    """User-facing run log.

    Each instance owns a private child of the ``pagescrape.run`` logger, so
    two runs in one process (as in tests) never share handlers. Records do
    not propagate, so the run log reaches only its own sink and never the
    diagnostic handlers the CLI installs.
    """

    def __init__(self, handler: logging.Handler) -> None:
        self.logger = logging.getLogger(
            f"{RUN_LOGGER_NAME}.{next(_instance_ids)}"
        )
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        handler.setFormatter(RunLogFormatter())
        self.logger.addHandler(handler)
        self.handler = handler

    def msg(self, message: str) -> None:
        self.logger.info(message)

    def alert(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def close(self) -> None:
        """Detach and close the handler."""
        self.logger.removeHandler(self.handler)
        self.handler.close()


def stdout_logger(config: RunConfig) -> RunLogger:
    return RunLogger(logging.StreamHandler(sys.stdout))


def file_logger(config: RunConfig) -> RunLogger:
    """Append run log lines to ``config.log_file``."""
    return RunLogger(
        logging.FileHandler(config.log_file, mode="a", encoding="utf-8")
    )


def null_logger(config: RunConfig) -> RunLogger:
    return RunLogger(logging.NullHandler())
