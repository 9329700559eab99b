"""Named factories for run loggers, formatters and writers.

Config files select components by name (``logger``, ``format``,
``writer``). The registry maps each name to a factory:

- logger factory: ``(config) -> RunLogger``
- formatter factory: ``(config) -> Formatter``
- writer factory: ``(config, log, formatter) -> Writer``

``Registry.with_builtins()`` returns a registry holding the built-in set.
Additional entries may be registered by config files before the run
starts; every requested name is resolved once, at startup, and an unknown
name is a fatal startup error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, TypeVar

from pagescrape import formatters, loggers, writers
from pagescrape.common.exceptions import RegistryLookupError

if TYPE_CHECKING:
    from pagescrape.data_types import RunConfig
    from pagescrape.formatters import Formatter
    from pagescrape.loggers import RunLogger
    from pagescrape.writers import Writer

logger = logging.getLogger(__name__)

LoggerFactory = Callable[["RunConfig"], "RunLogger"]
FormatterFactory = Callable[["RunConfig"], "Formatter"]
WriterFactory = Callable[["RunConfig", "RunLogger", "Formatter"], "Writer"]

F = TypeVar("F")


class Registry:
    """Registry of logger, formatter and writer factories."""

    def __init__(self) -> None:
        self.loggers: dict[str, LoggerFactory] = {}
        self.formatters: dict[str, FormatterFactory] = {}
        self.writers: dict[str, WriterFactory] = {}

    @classmethod
    def with_builtins(cls) -> Registry:
        """Create a registry holding the built-in components."""
        registry = cls()
        registry.register_logger("stdout", loggers.stdout_logger)
        registry.register_logger("file", loggers.file_logger)
        registry.register_logger("none", loggers.null_logger)

        registry.register_formatter(
            "raw", lambda config: formatters.RawFormatter()
        )
        registry.register_formatter(
            "json", lambda config: formatters.JSONFormatter()
        )
        registry.register_formatter(
            "csv", lambda config: formatters.CSVFormatter(config.csv_fields)
        )

        registry.register_writer("stdout", writers.stdout_writer)
        registry.register_writer("file", writers.file_writer)
        registry.register_writer("itemfile", writers.item_file_writer)
        return registry

    def register_logger(self, name: str, factory: LoggerFactory) -> None:
        self.loggers[name] = factory

    def register_formatter(
        self, name: str, factory: FormatterFactory
    ) -> None:
        self.formatters[name] = factory

    def register_writer(self, name: str, factory: WriterFactory) -> None:
        self.writers[name] = factory

    @staticmethod
    def _lookup(table: dict[str, F], kind: str, name: str) -> F:
        try:
            return table[name]
        except KeyError:
            raise RegistryLookupError(kind, name, list(table)) from None

    def get_logger(self, name: str) -> LoggerFactory:
        return self._lookup(self.loggers, "logger", name)

    def get_formatter(self, name: str) -> FormatterFactory:
        return self._lookup(self.formatters, "formatter", name)

    def get_writer(self, name: str) -> WriterFactory:
        return self._lookup(self.writers, "writer", name)

    def validate(self, config: RunConfig) -> None:
        """Check that every component named by config is registered.

        Raises:
            RegistryLookupError: For the first unknown name, checked in the
                order logger, writer, formatter.
        """
        self.get_logger(config.logger)
        self.get_writer(config.writer)
        self.get_formatter(config.format)
