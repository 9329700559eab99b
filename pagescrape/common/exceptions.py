"""Exception types for run setup and output errors.

Per-page load failures are not exceptions: they are logged by the scrape
protocol and the run continues. Everything here either stops a run before
the first suite starts or signals misuse of a writer.
"""

from typing import Any


class PageScrapeError(Exception):
    """Base class for pagescrape errors."""


class FatalStartupError(PageScrapeError):
    """Raised when a run cannot start.

    Covers missing suites, unknown registry names and unreadable
    configuration sources. The CLI reports these as a single diagnostic
    and exits non-zero without flushing any output.
    """

    def __init__(
        self, message: str, context: dict[str, Any] | None = None
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the problem.
            context: Optional dict of additional context (paths, names).
        """
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        for key, value in self.context.items():
            parts.append(f"  {key}: {value}")
        return "\n".join(parts)


class ConfigurationError(FatalStartupError):
    """Raised when a configuration source cannot be loaded or is invalid."""

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        super().__init__(
            message, {"source": source} if source is not None else None
        )


class RegistryLookupError(FatalStartupError):
    """Raised when a logger, formatter or writer name is not registered.

    Attributes:
        kind: Registry table that was searched ("logger", "writer", ...).
        name: The name that could not be resolved.
        available: Names registered in that table.
    """

    def __init__(self, kind: str, name: str, available: list[str]) -> None:
        self.kind = kind
        self.name = name
        self.available = available
        super().__init__(
            f'Could not find {kind}: "{name}"',
            {"available": ", ".join(sorted(available))},
        )


class PageEvaluationError(PageScrapeError):
    """Raised when JavaScript evaluated inside a page throws, or a Python
    hook standing in for a script raises.

    The scrape protocol logs this on the run log and treats the evaluation
    as having returned nothing; it never stops the run.

    Attributes:
        script: The JavaScript source, or the name of the Python hook.
        url: URL of the page it was evaluated in.
        reason: Error message reported by the browser or the hook.
    """

    def __init__(self, script: str, url: str, reason: str) -> None:
        self.script = script
        self.url = url
        self.reason = reason
        super().__init__(f"Evaluation failed on {url}: {reason}")


class WriterFinishedError(PageScrapeError):
    """Raised when a writer is used after ``finish()`` has been called."""
