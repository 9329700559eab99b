"""Suite driver implementation.

This module contains the driver that runs scraper suites to completion:

- ``SuiteQueue`` is a FIFO of suites. ``advance()`` pops and runs the head
  suite, or, once the queue is empty, invokes the completion callback.
  ``drain()`` calls ``advance()`` in a loop, so the call stack stays flat
  however many child suites link discovery creates.
- ``RunContext`` is the state of one run: config, run logger, writer,
  browser session, visited set, queue and the sleep used for readiness
  polling. It is created once per run and threaded through every suite.
- ``SuiteDriver`` validates the setup (suites present, every named
  component registered) at construction time, before anything is written,
  then builds the context and drains the queue in ``run()``.

Exactly one suite runs at a time and exactly one page is open at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pagescrape.common.exceptions import FatalStartupError
from pagescrape.data_types import RunConfig, VisitedSet
from pagescrape.registry import Registry
from pagescrape.suite import ScraperSuite

if TYPE_CHECKING:
    from pagescrape.driver.page import BrowserSession
    from pagescrape.loggers import RunLogger
    from pagescrape.writers import Writer

logger = logging.getLogger(__name__)

SleepFunction = Callable[[float], Awaitable[None]]


class SuiteQueue:
    """FIFO queue of scraper suites, run one at a time."""

    def __init__(
        self, on_complete: Callable[[], None] | None = None
    ) -> None:
        self._suites: deque[ScraperSuite] = deque()
        self.on_complete = on_complete

    def __len__(self) -> int:
        return len(self._suites)

    def enqueue(self, suite: ScraperSuite) -> None:
        """Append a suite to the tail of the queue."""
        logger.debug(f"Enqueued {suite!r}")
        self._suites.append(suite)

    async def advance(self, ctx: RunContext) -> bool:
        """Run the next suite, or complete the run if none are left.

        Returns:
            True if a suite ran, False if the queue was empty.
        """
        if self._suites:
            suite = self._suites.popleft()
            await suite.run(ctx)
            return True
        if self.on_complete is not None:
            self.on_complete()
        return False

    async def drain(self, ctx: RunContext) -> None:
        """Run suites until the queue is empty, then complete the run."""
        while await self.advance(ctx):
            pass


@dataclass
class RunContext:
    """Mutable state of a single run.

    Attributes:
        config: Frozen run configuration.
        log: Run logger.
        writer: Output writer.
        browser: Source of fresh pages, one per URL.
        visited: URLs already handed to the page.
        queue: Suites waiting to run.
        sleep: Coroutine function used between readiness polls.
    """

    config: RunConfig
    log: RunLogger
    writer: Writer
    browser: BrowserSession
    visited: VisitedSet = field(default_factory=VisitedSet)
    queue: SuiteQueue = field(default_factory=SuiteQueue)
    sleep: SleepFunction = asyncio.sleep

    def __post_init__(self) -> None:
        if self.queue.on_complete is None:
            self.queue.on_complete = self.complete

    @classmethod
    def create(
        cls,
        config: RunConfig,
        registry: Registry,
        browser: BrowserSession,
        sleep: SleepFunction = asyncio.sleep,
    ) -> RunContext:
        """Build the run logger, formatter and writer named by config.

        Raises:
            RegistryLookupError: If a named component is not registered.
        """
        registry.validate(config)
        log = registry.get_logger(config.logger)(config)
        formatter = registry.get_formatter(config.format)(config)
        writer = registry.get_writer(config.writer)(config, log, formatter)
        return cls(
            config=config,
            log=log,
            writer=writer,
            browser=browser,
            sleep=sleep,
        )

    def complete(self) -> None:
        """Finish the writer once every suite has run."""
        self.writer.finish()
        self.log.msg(f"Saved {self.writer.count()} items")


class SuiteDriver:
    """Driver that runs configured scraper suites against a browser.

    Example usage:
        driver = SuiteDriver(
            [{"url": "https://example.com", "scraper": "() => document.title"}],
            RunConfig(writer="file", outFile="titles.json"),
        )
        async with PlaywrightSession.open() as session:
            count = await driver.run(session)
    """

    def __init__(
        self,
        suite_configs: Iterable[Mapping[str, Any]],
        config: RunConfig | None = None,
        registry: Registry | None = None,
        sleep: SleepFunction = asyncio.sleep,
    ) -> None:
        """Validate the setup.

        Args:
            suite_configs: Per-suite configuration mappings, in run order.
            config: Run configuration (default: all defaults).
            registry: Component registry (default: built-ins only).
            sleep: Coroutine function used between readiness polls.

        Raises:
            FatalStartupError: If no suites are configured, a suite option
                is invalid, or a named component is not registered.
        """
        self.config = config or RunConfig()
        self.registry = registry or Registry.with_builtins()
        self.sleep = sleep

        suite_configs = list(suite_configs)
        if not suite_configs:
            raise FatalStartupError("No suites configured")
        self.suites = [
            ScraperSuite.from_config(suite_config, i)
            for i, suite_config in enumerate(suite_configs)
        ]
        self.registry.validate(self.config)
        self.context: RunContext | None = None

    async def run(self, browser: BrowserSession) -> int:
        """Run every suite, including discovered child suites.

        Returns:
            The number of items written.
        """
        if self.context is not None:
            raise RuntimeError("SuiteDriver.run() may only be called once")

        ctx = RunContext.create(
            self.config, self.registry, browser, sleep=self.sleep
        )
        self.context = ctx
        for suite in self.suites:
            ctx.queue.enqueue(suite)
        try:
            await ctx.queue.drain(ctx)
        finally:
            ctx.log.close()
        return ctx.writer.count()
