"""Test utilities for suite driver tests.

This module provides an in-memory browser, a writer and run logger that
keep their output in memory, and a sleep replacement that records polling
without waiting.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pagescrape.common.exceptions import PageEvaluationError
from pagescrape.data_types import DEFAULT_READY, RunConfig
from pagescrape.driver.page import resolve_locally
from pagescrape.driver.suite_driver import SuiteDriver
from pagescrape.formatters import Formatter
from pagescrape.loggers import RunLogger
from pagescrape.registry import Registry
from pagescrape.writers import BatchWriter

logger = logging.getLogger(__name__)


class FakePage:
    """In-memory page driven by a FakeBrowser's script table.

    String values passed to ``evaluate`` are looked up in the browser's
    per-URL script table, then in its default table. A table entry may be
    a value, an exception instance (raised as a PageEvaluationError) or a
    callable taking the page.
    """

    def __init__(self, browser: "FakeBrowser") -> None:
        self.browser = browser
        self._url = ""
        self.on_console: Callable[[str], None] | None = None
        self.on_alert: Callable[[str], None] | None = None
        self.injected: list[str] = []
        self.evaluated: list[Any] = []
        self.closed = False

    @property
    def url(self) -> str:
        return self._url

    async def open(self, url: str) -> bool:
        self.browser.opened.append(url)
        if url in self.browser.failing:
            return False
        self._url = url
        for message in self.browser.console.get(url, []):
            if self.on_console is not None:
                self.on_console(message)
        for message in self.browser.alerts.get(url, []):
            if self.on_alert is not None:
                self.on_alert(message)
        return True

    async def evaluate(self, value: Any) -> Any:
        self.evaluated.append(value)
        if not isinstance(value, str):
            return resolve_locally(value, self._url)
        table = self.browser.scripts.get(self._url, {})
        if value in table:
            result = table[value]
        else:
            result = self.browser.default_scripts.get(value)
        if isinstance(result, Exception):
            raise PageEvaluationError(value, self._url, str(result))
        if callable(result):
            return result(self)
        return result

    async def inject_script(self, path: str) -> bool:
        self.injected.append(path)
        return path not in self.browser.missing_scripts

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    """Browser session handing out FakePages.

    Args:
        scripts: Per-URL tables mapping JavaScript source to results.
        failing: URLs whose load fails.
        default_scripts: Results used for any URL without its own entry.
            The default readiness predicate passes unless overridden.
        missing_scripts: Script paths whose injection fails.
        console: Console messages each URL emits when opened.
        alerts: Alerts each URL raises when opened.
    """

    def __init__(
        self,
        scripts: Mapping[str, Mapping[str, Any]] | None = None,
        failing: Iterable[str] = (),
        default_scripts: Mapping[str, Any] | None = None,
        missing_scripts: Iterable[str] = (),
        console: Mapping[str, list[str]] | None = None,
        alerts: Mapping[str, list[str]] | None = None,
    ) -> None:
        self.scripts = dict(scripts or {})
        self.failing = set(failing)
        self.default_scripts = {DEFAULT_READY: True}
        self.default_scripts.update(default_scripts or {})
        self.missing_scripts = set(missing_scripts)
        self.console = dict(console or {})
        self.alerts = dict(alerts or {})
        self.opened: list[str] = []
        self.pages: list[FakePage] = []

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        return page


class MemoryWriter(BatchWriter):
    """Batching writer that keeps every write in memory."""

    def __init__(
        self,
        formatter: Formatter,
        log: RunLogger,
        batch_size: int | None = None,
    ) -> None:
        super().__init__(formatter, log, batch_size)
        self.chunks: list[str] = []

    def write(self, text: str) -> None:
        self.chunks.append(text)

    @property
    def output(self) -> str:
        return "".join(self.chunks)


class MemoryLogHandler(logging.Handler):
    """Log handler that keeps formatted run log lines."""

    def __init__(self) -> None:
        super().__init__()
        self.lines: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(self.format(record))


class RecordingSleep:
    """Replacement for asyncio.sleep that records calls and returns."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total_ms(self) -> int:
        return round(sum(self.calls) * 1000)


def memory_registry() -> Registry:
    """Built-in registry plus ``memory`` writer and logger entries."""
    registry = Registry.with_builtins()
    registry.register_writer(
        "memory",
        lambda config, log, formatter: MemoryWriter(
            formatter, log, config.batch_size
        ),
    )
    registry.register_logger(
        "memory", lambda config: RunLogger(MemoryLogHandler())
    )
    return registry


def make_driver(
    suite_configs: list[Mapping[str, Any]],
    sleep: RecordingSleep | None = None,
    **config: Any,
) -> SuiteDriver:
    """Build a SuiteDriver writing to memory with an in-memory run log."""
    settings: dict[str, Any] = {
        "writer": "memory",
        "logger": "memory",
        "clientScripts": [],
    }
    settings.update(config)
    return SuiteDriver(
        suite_configs,
        RunConfig.from_mapping(settings),
        registry=memory_registry(),
        sleep=sleep or RecordingSleep(),
    )


def writer_of(driver: SuiteDriver) -> MemoryWriter:
    assert driver.context is not None
    writer = driver.context.writer
    assert isinstance(writer, MemoryWriter)
    return writer


def log_lines(driver: SuiteDriver) -> list[str]:
    assert driver.context is not None
    handler = driver.context.log.handler
    assert isinstance(handler, MemoryLogHandler)
    return handler.lines
