"""Data types shared by the suite driver, writers and config loader.

This module defines:

1. LazyValue - option values that are either literals or zero-argument
   callables, resolved uniformly by ``resolve``
2. RunConfig - process-wide run parameters, validated once and frozen
3. SuiteOptions - the per-suite option set shared by a suite and every
   child suite it spawns
4. VisitedSet - the run-scoped record of URLs handed to the page
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeAlias, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
)

from pagescrape.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

LazyValue: TypeAlias = T | Callable[[], T]

CLIENT_SCRIPT = Path(__file__).parent / "client" / "pagescrape_client.js"

# Set by the bundled client script once the document has loaded.
DEFAULT_READY = "() => !!(window.__pagescrape && window.__pagescrape.ready)"


def resolve(value: LazyValue[T]) -> T:
    """Return ``value()`` if value is callable, otherwise value itself."""
    return value() if callable(value) else value


def arrify(value: Any) -> list[Any]:
    """Normalize a single value or a sequence of values to a list.

    ``None`` becomes an empty list; lists and tuples are copied; anything
    else is wrapped.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _pick(mapping: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-None value among keys, or None."""
    for key in keys:
        value = mapping.get(key)
        if value is not None:
            return value
    return None


# =============================================================================
# Run configuration
# =============================================================================


class RunConfig(BaseModel):
    """Process-wide run parameters.

    Keys are accepted in camelCase (as written in config files), in
    snake_case, and under the legacy names ``timeoutInterval``,
    ``timeoutLimit`` and ``log``.

    Attributes:
        poll_interval: Milliseconds between readiness checks.
        poll_timeout_limit: Milliseconds of polling before extraction is
            forced.
        logger: Registry name of the run logger.
        writer: Registry name of the output writer.
        format: Registry name of the output formatter.
        log_file: Path used by the file logger.
        out_file: Path used by the file writers.
        batch_size: Optional flush threshold for batching writers.
        csv_fields: Optional explicit CSV header.
        client_scripts: Scripts injected into every successfully loaded page.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    poll_interval: int = Field(
        default=300,
        gt=0,
        validation_alias=AliasChoices(
            "poll_interval", "pollInterval", "timeoutInterval"
        ),
    )
    poll_timeout_limit: int = Field(
        default=3000,
        ge=0,
        validation_alias=AliasChoices(
            "poll_timeout_limit", "pollTimeoutLimit", "timeoutLimit"
        ),
    )
    logger: str = Field(
        default="stdout", validation_alias=AliasChoices("logger", "log")
    )
    writer: str = "stdout"
    format: str = "json"
    log_file: str = Field(
        default="pagescrape_log.txt",
        validation_alias=AliasChoices("log_file", "logFile"),
    )
    out_file: str = Field(
        default="pagescrape_out.txt",
        validation_alias=AliasChoices("out_file", "outFile"),
    )
    batch_size: int | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("batch_size", "batchSize"),
    )
    csv_fields: tuple[str, ...] | None = Field(
        default=None,
        validation_alias=AliasChoices("csv_fields", "csvFields"),
    )
    client_scripts: tuple[str, ...] = Field(
        default=(str(CLIENT_SCRIPT),),
        validation_alias=AliasChoices("client_scripts", "clientScripts"),
    )

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, Any], source: str | None = None
    ) -> RunConfig:
        """Validate a raw config mapping.

        Raises:
            ConfigurationError: If a key is unknown or a value is invalid.
        """
        try:
            return cls.model_validate(dict(mapping))
        except ValidationError as e:
            error_summary = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(
                f"Invalid run configuration: {error_summary}", source
            ) from e


# =============================================================================
# Suite options
# =============================================================================


@dataclass(frozen=True)
class SuiteOptions:
    """Options shared by a suite and all of its child suites.

    Every predicate and hook is a LazyValue. A ``str`` is JavaScript source
    and is evaluated inside the page; anything else is resolved on the
    Python side.

    Attributes:
        ready: Readiness predicate, polled until truthy or timed out.
        scrapable: Whether extraction should run at all for a page.
        pre_scrape: Side-effecting hook run before the scrapers.
        scrapers: Scraper functions, evaluated in order.
        load_scripts: Suite-specific scripts injected before extraction.
        more_urls: Optional link-discovery hook returning candidate URLs.
        max_depth: Deepest child-suite depth allowed; None is unbounded.
        no_conflict: Release the ``$`` alias if the page loads jQuery.
    """

    ready: LazyValue[Any] = DEFAULT_READY
    scrapable: LazyValue[Any] = True
    pre_scrape: LazyValue[Any] = True
    scrapers: tuple[LazyValue[Any], ...] = ()
    load_scripts: tuple[str, ...] = ()
    more_urls: LazyValue[Iterable[str]] | None = None
    max_depth: int | None = None
    no_conflict: bool = False

    def __post_init__(self) -> None:
        if self.max_depth is not None and self.max_depth < 0:
            raise ConfigurationError(
                f"maxDepth must be non-negative, got {self.max_depth}"
            )

    @classmethod
    def from_config(cls, suite_config: Mapping[str, Any]) -> SuiteOptions:
        """Build options from a per-suite configuration mapping.

        Accepts ``scraper``/``scrapers`` and ``loadScript``/``loadScripts``
        with single values or lists, and camelCase or snake_case keys.
        """
        defaults = cls()
        ready = _pick(suite_config, "ready")
        scrapable = _pick(suite_config, "scrapable")
        pre_scrape = _pick(suite_config, "preScrape", "pre_scrape")
        max_depth = _pick(suite_config, "maxDepth", "max_depth")
        return cls(
            ready=defaults.ready if ready is None else ready,
            scrapable=defaults.scrapable if scrapable is None else scrapable,
            pre_scrape=defaults.pre_scrape
            if pre_scrape is None
            else pre_scrape,
            scrapers=tuple(
                arrify(_pick(suite_config, "scrapers", "scraper"))
            ),
            load_scripts=tuple(
                str(script)
                for script in arrify(
                    _pick(
                        suite_config,
                        "loadScript",
                        "loadScripts",
                        "load_script",
                        "load_scripts",
                    )
                )
            ),
            more_urls=_pick(suite_config, "moreUrls", "more_urls"),
            max_depth=_depth(max_depth),
            no_conflict=bool(
                _pick(suite_config, "noConflict", "no_conflict")
            ),
        )

    def allows_child_at(self, depth: int) -> bool:
        """True if a suite at ``depth`` may spawn a child suite."""
        return self.max_depth is None or depth < self.max_depth


def _depth(value: Any) -> int | None:
    """Coerce a configured maxDepth to an int, or None if unset."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"maxDepth must be an integer, got {value!r}"
        ) from e


def suite_urls(suite_config: Mapping[str, Any]) -> list[str]:
    """Return the ordered URL list of a per-suite configuration mapping."""
    return [str(url) for url in arrify(_pick(suite_config, "url", "urls"))]


# =============================================================================
# Visited set
# =============================================================================


class VisitedSet:
    """Run-scoped record of URLs that have been handed to the page.

    Successfully loaded URLs are visited. URLs whose load failed are
    recorded separately so that they are neither opened again nor
    rediscovered. Neither set ever shrinks.
    """

    def __init__(self) -> None:
        self._visited: set[str] = set()
        self._failed: set[str] = set()

    def add(self, url: str) -> None:
        self._visited.add(url)

    def mark_failed(self, url: str) -> None:
        self._failed.add(url)

    def __contains__(self, url: object) -> bool:
        return url in self._visited or url in self._failed

    def __len__(self) -> int:
        return len(self._visited)

    @property
    def visited(self) -> frozenset[str]:
        return frozenset(self._visited)

    @property
    def failed(self) -> frozenset[str]:
        return frozenset(self._failed)
