"""Playwright-backed browser session for scraper suites.

This module provides the page collaborator used by the CLI: a browser
context that opens one tab per URL and evaluates scraper JavaScript inside
it.
"""

from pagescrape.driver.playwright_driver.playwright_driver import (
    PlaywrightPage,
    PlaywrightSession,
)

__all__ = ["PlaywrightPage", "PlaywrightSession"]
