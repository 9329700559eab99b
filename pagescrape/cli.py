"""pagescrape CLI - run scraper suites from configuration sources.

Usage:
    pagescrape config.py                    # Run the suites in config.py
    pagescrape base.json site.py            # Later sources override earlier ones
    pagescrape config.py --browser firefox  # Use another Playwright browser
    pagescrape config.py --headed -v        # Show the browser, debug logging
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click

from pagescrape.common.exceptions import FatalStartupError
from pagescrape.config_loader import load_config_sources

logger = logging.getLogger(__name__)


class FatalError(click.ClickException):
    """Fatal startup error, reported as a single diagnostic line."""

    exit_code = 1

    def show(self, file=None) -> None:  # type: ignore[no-untyped-def]
        click.echo(f"FATAL ERROR: {self.format_message()}", err=True)


@click.command()
@click.argument(
    "config_files",
    nargs=-1,
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option(
    "--browser",
    "browser_type",
    type=click.Choice(["chromium", "firefox", "webkit"]),
    default="chromium",
    show_default=True,
    help="Playwright browser to drive.",
)
@click.option(
    "--headed/--headless",
    default=False,
    show_default=True,
    help="Show the browser window.",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
@click.version_option(package_name="pagescrape")
def cli(
    config_files: tuple[Path, ...],
    browser_type: str,
    headed: bool,
    verbose: bool,
) -> None:
    """Scrape the suites described by one or more CONFIG_FILES.

    CONFIG_FILES are Python (.py) or JSON (.json) configuration sources,
    loaded in order.

    \b
    Examples:
        pagescrape my_suites.py
        pagescrape defaults.json my_suites.py --browser firefox
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        setup = load_config_sources(config_files)
        driver = setup.driver()
    except FatalStartupError as e:
        logger.debug("Startup failed", exc_info=True)
        raise FatalError(str(e)) from e

    try:
        from pagescrape.driver.playwright_driver import PlaywrightSession
    except ImportError as e:
        raise FatalError(
            f"Missing dependency: {e}. Install Playwright and its browsers: "
            "pip install playwright && playwright install"
        ) from e

    async def _go() -> int:
        async with PlaywrightSession.open(
            browser_type=browser_type, headless=not headed
        ) as session:
            return await driver.run(session)

    count = asyncio.run(_go())
    logger.debug(f"Run finished with {count} items")


def main() -> None:
    """Entry point for the ``pagescrape`` console script."""
    cli()
