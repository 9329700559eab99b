"""Page collaborator contract.

The suite driver never talks to a browser directly. It asks a
``BrowserSession`` for a fresh ``Page`` per URL and drives it through four
operations:

- ``open(url)``: navigate; returns True if the page loaded
- ``evaluate(value)``: run JavaScript source (a ``str``) inside the page,
  or resolve any other LazyValue on the Python side; either way a failure
  raises PageEvaluationError
- ``inject_script(path)``: add a script file to the page; returns success
- ``close()``: release the page

Console messages and alerts raised by the page are forwarded to the
``on_console`` and ``on_alert`` callbacks when set.

``pagescrape.driver.playwright_driver`` implements this contract with
Playwright; tests use an in-memory implementation.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from pagescrape.common.exceptions import PageEvaluationError
from pagescrape.data_types import resolve

MessageCallback = Callable[[str], None]

# Releases the ``$`` alias when the page ships jQuery; harmless otherwise.
NO_CONFLICT_SCRIPT = (
    "() => { if (window.jQuery && window.jQuery.noConflict) "
    "{ window.jQuery.noConflict(); } }"
)


def is_page_script(value: Any) -> bool:
    """True if value is JavaScript source to be evaluated in the page."""
    return isinstance(value, str)


def resolve_locally(value: Any, url: str) -> Any:
    """Resolve a LazyValue on the Python side.

    A hook that raises is reported as a PageEvaluationError, the same way a
    script that throws inside the page is.
    """
    try:
        return resolve(value)
    except Exception as e:
        name = getattr(value, "__name__", repr(value))
        raise PageEvaluationError(
            name, url, f"{type(e).__name__}: {e}"
        ) from e


class Page(Protocol):
    on_console: MessageCallback | None
    on_alert: MessageCallback | None

    @property
    def url(self) -> str: ...

    async def open(self, url: str) -> bool: ...

    async def evaluate(self, value: Any) -> Any: ...

    async def inject_script(self, path: str) -> bool: ...

    async def close(self) -> None: ...


class BrowserSession(Protocol):
    async def new_page(self) -> Page: ...
