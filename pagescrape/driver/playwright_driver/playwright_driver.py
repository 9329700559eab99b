"""Playwright implementation of the page collaborator.

``PlaywrightSession.open()`` launches a browser and a single browser
context; every call to ``new_page()`` opens a fresh tab in that context,
wrapped as a ``PlaywrightPage``:

- ``open`` navigates and waits for the ``load`` event; any navigation
  error (DNS failure, refused connection, timeout) is a failed load
- ``evaluate`` runs ``str`` values through ``page.evaluate`` and resolves
  everything else locally, reporting a raising hook as a failed evaluation
- ``inject_script`` uses ``page.add_script_tag(path=...)``
- console messages and alert dialogs are forwarded to the callbacks;
  every dialog is dismissed so the page never blocks
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    ConsoleMessage,
    Dialog,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page as PlaywrightNativePage

from pagescrape.common.exceptions import PageEvaluationError
from pagescrape.driver.page import (
    MessageCallback,
    is_page_script,
    resolve_locally,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


class PlaywrightPage:
    """A single browser tab driven through the page collaborator contract.

    Args:
        page: The Playwright page to wrap.
        wait_until: Load state ``open`` waits for (default: "load").
        navigation_timeout: Navigation timeout in milliseconds (default:
            None = Playwright default).
    """

    def __init__(
        self,
        page: PlaywrightNativePage,
        wait_until: str = "load",
        navigation_timeout: float | None = None,
    ) -> None:
        self._page = page
        self.wait_until = wait_until
        self.navigation_timeout = navigation_timeout
        self.on_console: MessageCallback | None = None
        self.on_alert: MessageCallback | None = None
        page.on("console", self._handle_console)
        page.on("dialog", self._handle_dialog)

    @property
    def url(self) -> str:
        return self._page.url

    def _handle_console(self, message: ConsoleMessage) -> None:
        if self.on_console is not None:
            self.on_console(message.text)

    async def _handle_dialog(self, dialog: Dialog) -> None:
        if dialog.type == "alert" and self.on_alert is not None:
            self.on_alert(dialog.message)
        await dialog.dismiss()

    async def open(self, url: str) -> bool:
        try:
            await self._page.goto(
                url,
                wait_until=self.wait_until,  # type: ignore[arg-type]
                timeout=self.navigation_timeout,
            )
        except PlaywrightError as e:
            logger.debug(f"Navigation to {url} failed: {e}")
            return False
        return True

    async def evaluate(self, value: Any) -> Any:
        if not is_page_script(value):
            return resolve_locally(value, self.url)
        try:
            return await self._page.evaluate(value)
        except PlaywrightError as e:
            raise PageEvaluationError(str(value), self.url, str(e)) from e

    async def inject_script(self, path: str) -> bool:
        try:
            await self._page.add_script_tag(path=path)
        except (PlaywrightError, OSError) as e:
            logger.debug(f"Could not inject {path} into {self.url}: {e}")
            return False
        return True

    async def close(self) -> None:
        await self._page.close()


class PlaywrightSession:
    """Browser context that hands out one ``PlaywrightPage`` per URL.

    Example:
        async with PlaywrightSession.open(headless=True) as session:
            count = await driver.run(session)
    """

    def __init__(
        self,
        context: BrowserContext,
        wait_until: str = "load",
        navigation_timeout: float | None = None,
    ) -> None:
        self.context = context
        self.wait_until = wait_until
        self.navigation_timeout = navigation_timeout

    async def new_page(self) -> PlaywrightPage:
        page = await self.context.new_page()
        return PlaywrightPage(
            page,
            wait_until=self.wait_until,
            navigation_timeout=self.navigation_timeout,
        )

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        browser_type: str = "chromium",
        headless: bool = True,
        viewport: dict[str, int] | None = None,
        user_agent: str | None = None,
        locale: str = "en-US",
        wait_until: str = "load",
        navigation_timeout: float | None = None,
    ) -> AsyncIterator[PlaywrightSession]:
        """Launch a browser and yield a session bound to a new context.

        Args:
            browser_type: "chromium", "firefox", or "webkit" (default:
                "chromium").
            headless: Run browser in headless mode (default: True).
            viewport: Browser viewport size (default: 1280x720).
            user_agent: Custom user agent string (default: browser default).
            locale: Browser locale (default: "en-US").
            wait_until: Load state each navigation waits for.
            navigation_timeout: Navigation timeout in milliseconds.

        Yields:
            Initialized PlaywrightSession.
        """
        if viewport is None:
            viewport = {"width": 1280, "height": 720}

        playwright = await async_playwright().start()
        try:
            browser_launcher = getattr(playwright, browser_type)
            browser: Browser = await browser_launcher.launch(
                headless=headless
            )
            try:
                context_kwargs: dict[str, Any] = {
                    "viewport": viewport,
                    "locale": locale,
                }
                if user_agent:
                    context_kwargs["user_agent"] = user_agent
                context = await browser.new_context(**context_kwargs)
                try:
                    yield cls(
                        context,
                        wait_until=wait_until,
                        navigation_timeout=navigation_timeout,
                    )
                finally:
                    await context.close()
            finally:
                await browser.close()
        finally:
            await playwright.stop()
