"""Configuration sources.

A run is described by one or more configuration sources, loaded in order.
Each source may set run configuration keys, add suites, and register extra
loggers, formatters or writers.

Python sources (``.py``) are executed with a ``pagescrape`` global bound to
the ``RunSetup`` being built::

    pagescrape.config(format="csv", writer="file", outFile="out.csv")
    pagescrape.add_suite({
        "title": "Quotes",
        "url": "https://quotes.toscrape.com/",
        "scraper": "() => _ps.getText('.quote .text')",
        "moreUrls": "() => _ps.getAnchorUrls('li.next a')",
        "maxDepth": 3,
    })

JSON sources (``.json``) hold an object with optional ``config`` and
``suites`` keys::

    {"config": {"format": "json"},
     "suites": [{"url": "https://example.com", "scraper": "() => document.title"}]}

Later sources override earlier configuration keys; suites accumulate.
"""

from __future__ import annotations

import json
import logging
import runpy
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pagescrape.common.exceptions import ConfigurationError, PageScrapeError
from pagescrape.data_types import RunConfig
from pagescrape.driver.suite_driver import SuiteDriver
from pagescrape.registry import (
    FormatterFactory,
    LoggerFactory,
    Registry,
    WriterFactory,
)

logger = logging.getLogger(__name__)

_JSON_KEYS = {"config", "suites"}


class RunSetup:
    """Run configuration and suites accumulated from configuration sources.

    Attributes:
        registry: Component registry; starts with the built-ins.
        settings: Raw run configuration keys, validated by ``run_config``.
        suites: Per-suite configuration mappings, in run order.
    """

    def __init__(self, registry: Registry | None = None) -> None:
        self.registry = registry or Registry.with_builtins()
        self.settings: dict[str, Any] = {}
        self.suites: list[Mapping[str, Any]] = []

    # ------------------------------------------------------------------
    # API exposed to Python configuration sources
    # ------------------------------------------------------------------

    def config(
        self,
        mapping: Mapping[str, Any] | str | None = None,
        value: Any = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Set run configuration keys and return the current settings.

        Accepts a mapping, a single ``key, value`` pair, keyword arguments,
        or a mix. Keys set to None are ignored, so a source can leave a
        default in place explicitly.
        """
        if isinstance(mapping, str):
            mapping = {mapping: value}
        elif value is not None:
            raise ConfigurationError(
                "config() takes a value only after a key name"
            )
        for source in (mapping or {}, kwargs):
            for key, item in source.items():
                if item is not None:
                    self.settings[key] = item
        return dict(self.settings)

    def add_suite(self, *suites: Mapping[str, Any] | list[Any]) -> None:
        """Add one or more suite configuration mappings (or lists of them)."""
        for suite in suites:
            if isinstance(suite, (list, tuple)):
                self.add_suite(*suite)
            elif isinstance(suite, Mapping):
                self.suites.append(suite)
            else:
                raise ConfigurationError(
                    f"Suite configuration must be a mapping, got "
                    f"{type(suite).__name__}"
                )

    def add_scraper(self, url: str | list[str], scraper: Any) -> None:
        """Shorthand for a suite with only URLs and scrapers."""
        self.suites.append({"url": url, "scraper": scraper})

    def register_logger(self, name: str, factory: LoggerFactory) -> None:
        self.registry.register_logger(name, factory)

    def register_formatter(
        self, name: str, factory: FormatterFactory
    ) -> None:
        self.registry.register_formatter(name, factory)

    def register_writer(self, name: str, factory: WriterFactory) -> None:
        self.registry.register_writer(name, factory)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, path: Path | str) -> None:
        """Load one configuration source.

        Raises:
            ConfigurationError: If the source is missing, unreadable, of an
                unsupported type, or fails while loading.
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(
                f"Config file not found: {path}", str(path)
            )
        logger.debug(f"Loading configuration source {path}")

        match path.suffix.lower():
            case ".py":
                self._load_python(path)
            case ".json":
                self._load_json(path)
            case _:
                raise ConfigurationError(
                    f"Unsupported config file type '{path.suffix}' "
                    "(expected .py or .json)",
                    str(path),
                )

    def _load_python(self, path: Path) -> None:
        try:
            runpy.run_path(
                str(path),
                init_globals={"pagescrape": self},
                run_name="__pagescrape_config__",
            )
        except PageScrapeError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Error loading config file {path}: "
                f"{type(e).__name__}: {e}",
                str(path),
            ) from e

    def _load_json(self, path: Path) -> None:
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Could not read config file {path}: {e}", str(path)
            ) from e

        if not isinstance(document, dict):
            raise ConfigurationError(
                "JSON config must be an object", str(path)
            )
        unknown = set(document) - _JSON_KEYS
        if unknown:
            raise ConfigurationError(
                f"Unknown top-level keys: {', '.join(sorted(unknown))}",
                str(path),
            )

        settings = document.get("config", {})
        if not isinstance(settings, dict):
            raise ConfigurationError(
                '"config" must be an object', str(path)
            )
        suites = document.get("suites", [])
        if not isinstance(suites, list):
            raise ConfigurationError('"suites" must be a list', str(path))

        self.config(settings)
        self.add_suite(*suites)

    # ------------------------------------------------------------------
    # Building the run
    # ------------------------------------------------------------------

    def run_config(self) -> RunConfig:
        return RunConfig.from_mapping(self.settings)

    def driver(self, **kwargs: Any) -> SuiteDriver:
        """Validate the setup and build a SuiteDriver for it.

        Raises:
            FatalStartupError: If the setup cannot be run.
        """
        return SuiteDriver(
            self.suites,
            self.run_config(),
            registry=self.registry,
            **kwargs,
        )


def load_config_sources(
    paths: Iterable[Path | str],
    registry: Registry | None = None,
) -> RunSetup:
    """Load configuration sources in order into a single RunSetup."""
    setup = RunSetup(registry)
    for path in paths:
        setup.load(path)
    return setup

