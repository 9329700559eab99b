"""Scraper suites and the per-URL scrape protocol.

A suite is a titled list of URLs plus the options used to scrape them. It
processes its URLs strictly one at a time. For each URL the scrape protocol
moves through four states:

1. Opening - open a fresh page; a failed load is logged, contributes no
   items and skips straight to Done
2. Waiting - poll the readiness predicate every ``poll_interval`` ms until
   it is truthy or ``poll_timeout_limit`` ms have elapsed; a timeout
   forces extraction rather than failing the URL
3. Extracting - if the page is scrapable, inject suite scripts, run the
   pre-scrape hook and feed each scraper's result to the writer in order
4. Done - run link discovery and release the page

Link discovery never recurses: newly found URLs become a child suite
(``depth + 1``) appended to the tail of the run's suite queue, so every
suite already queued finishes before the child starts.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin

from pagescrape.common.exceptions import PageEvaluationError
from pagescrape.data_types import SuiteOptions, arrify, suite_urls
from pagescrape.driver.page import NO_CONFLICT_SCRIPT

if TYPE_CHECKING:
    from pagescrape.driver.page import Page
    from pagescrape.driver.suite_driver import RunContext

logger = logging.getLogger(__name__)


class ScraperSuite:
    """A set of URLs scraped with one option set.

    Attributes:
        title: Name used in run log messages and child suite titles.
        urls: URLs to scrape, in order.
        options: Options shared with every child suite.
        depth: 0 for configured suites, parent depth + 1 for child suites.
    """

    def __init__(
        self,
        title: str,
        urls: Iterable[str],
        options: SuiteOptions,
        depth: int = 0,
    ) -> None:
        if depth < 0:
            raise ValueError(f"Suite depth must be non-negative: {depth}")
        self.title = title
        self.urls: tuple[str, ...] = tuple(urls)
        self.options = options
        self.depth = depth
        self._cursor = 0
        self._children = 0

    @classmethod
    def from_config(
        cls, suite_config: Mapping[str, Any], index: int
    ) -> ScraperSuite:
        """Build a top-level suite from a per-suite configuration mapping."""
        return cls(
            title=suite_config.get("title") or f"Suite {index}",
            urls=suite_urls(suite_config),
            options=SuiteOptions.from_config(suite_config),
        )

    def __repr__(self) -> str:
        return (
            f"ScraperSuite(title={self.title!r}, urls={len(self.urls)}, "
            f"depth={self.depth})"
        )

    @property
    def remaining(self) -> int:
        """Number of URLs not yet scraped."""
        return len(self.urls) - self._cursor

    def spawn_child(self, urls: Sequence[str]) -> ScraperSuite:
        """Create the next child suite for URLs discovered by this suite."""
        child = ScraperSuite(
            title=f"{self.title}-sub{self._children}",
            urls=urls,
            options=self.options,
            depth=self.depth + 1,
        )
        self._children += 1
        return child

    async def run(self, ctx: RunContext) -> None:
        """Scrape every URL in order, then hand control back to the queue."""
        ctx.log.msg(f"{self.title} starting")
        while self._cursor < len(self.urls):
            url = self.urls[self._cursor]
            self._cursor += 1
            await self.scrape(url, ctx)
        ctx.log.msg(f"{self.title} complete")

    # ------------------------------------------------------------------
    # Scrape protocol
    # ------------------------------------------------------------------

    async def scrape(self, url: str, ctx: RunContext) -> None:
        """Run the scrape protocol for a single URL."""
        if url in ctx.visited:
            ctx.log.msg(f"Skipping {url}, already visited")
            return

        page = await ctx.browser.new_page()
        page.on_console = lambda message: ctx.log.msg(f"CLIENT: {message}")
        page.on_alert = lambda message: ctx.log.alert(f"CLIENT: {message}")
        try:
            if not await page.open(url):
                ctx.log.error(f"Page did not load: {url}")
                ctx.visited.mark_failed(url)
                await self.on_url_complete(None, ctx)
                return

            ctx.visited.add(url)
            ctx.log.msg(f"Scraping {url}")
            await self._prepare_page(page, ctx)
            await self.wait_until_ready(page, ctx)
            await self.on_scraped(page, ctx)
            await self.on_url_complete(page, ctx)
        finally:
            await page.close()

    async def _evaluate(self, page: Page, value: Any, ctx: RunContext) -> Any:
        try:
            return await page.evaluate(value)
        except PageEvaluationError as e:
            ctx.log.error(str(e))
            return None

    async def _inject(self, page: Page, script: str, ctx: RunContext) -> None:
        if not await page.inject_script(script):
            ctx.log.error(f"Could not inject script: {script}")

    async def _prepare_page(self, page: Page, ctx: RunContext) -> None:
        for script in ctx.config.client_scripts:
            await self._inject(page, script, ctx)
        if self.options.no_conflict:
            await self._evaluate(page, NO_CONFLICT_SCRIPT, ctx)

    async def wait_until_ready(self, page: Page, ctx: RunContext) -> bool:
        """Poll the readiness predicate.

        Returns:
            True if the predicate passed, False if polling timed out.
        """
        ready = self.options.ready
        if await self._evaluate(page, ready, ctx):
            return True

        interval = ctx.config.poll_interval
        elapsed = 0
        while True:
            await ctx.sleep(interval / 1000)
            elapsed += interval
            if await self._evaluate(page, ready, ctx):
                return True
            if elapsed >= ctx.config.poll_timeout_limit:
                logger.debug(
                    f"Readiness timed out after {elapsed}ms on {page.url}"
                )
                return False

    async def on_scraped(self, page: Page, ctx: RunContext) -> None:
        """Extract items from a ready page and send them to the writer."""
        opts = self.options
        if not await self._evaluate(page, opts.scrapable, ctx):
            return
        for script in opts.load_scripts:
            await self._inject(page, script, ctx)
        await self._evaluate(page, opts.pre_scrape, ctx)
        for scraper in opts.scrapers:
            ctx.writer.add(await self._evaluate(page, scraper, ctx))

    async def on_url_complete(
        self, page: Page | None, ctx: RunContext
    ) -> ScraperSuite | None:
        """Discover further URLs on a scraped page.

        Returns:
            The child suite that was enqueued, if any.
        """
        if page is None or self.options.more_urls is None:
            return None

        candidates = arrify(
            await self._evaluate(page, self.options.more_urls, ctx)
        )
        fresh: list[str] = []
        for candidate in candidates:
            url = urljoin(page.url, str(candidate))
            if url not in ctx.visited and url not in fresh:
                fresh.append(url)

        if not fresh or not self.options.allows_child_at(self.depth):
            return None

        ctx.log.msg(f"Found {len(fresh)} additional urls to scrape")
        child = self.spawn_child(fresh)
        ctx.queue.enqueue(child)
        return child
