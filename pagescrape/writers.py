"""Output writers.

A writer receives items as scrapers produce them and streams them to a sink
through a formatter. Batching writers buffer items and flush them in
batches; the framing tokens are emitted so that the concatenation of every
write is one well-formed document:

    first flush:  start + formatted batch
    later flush:  delimiter + formatted batch
    final flush:  ... + end          (only from finish())

Built-in writers (registered by ``Registry.with_builtins``):

- ``stdout``: batching writer to standard output
- ``file``: batching writer appending to ``RunConfig.out_file``, truncated
  once when the writer is created
- ``itemfile``: one file per item, no batching

New batching writers only need to implement ``write``::

    class ListWriter(BatchWriter):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            self.chunks = []

        def write(self, text):
            self.chunks.append(text)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from pagescrape.common.exceptions import WriterFinishedError
from pagescrape.data_types import arrify

if TYPE_CHECKING:
    from pagescrape.data_types import RunConfig
    from pagescrape.formatters import Formatter
    from pagescrape.loggers import RunLogger

logger = logging.getLogger(__name__)


class Writer:
    """Common writer contract.

    ``add`` accepts a single item or a list of items (flattened one level;
    ``None`` contributes nothing). ``finish`` is called exactly once, after
    the last item. ``count`` is the number of items ever added.
    """

    def __init__(self, formatter: Formatter, log: RunLogger) -> None:
        self.formatter = formatter
        self.log = log
        self._count = 0
        self._finished = False

    def _check_open(self) -> None:
        if self._finished:
            raise WriterFinishedError(
                f"{self.__class__.__name__} has already been finished"
            )

    def add(self, items: Any) -> None:
        raise NotImplementedError

    def finish(self) -> None:
        raise NotImplementedError

    def count(self) -> int:
        return self._count

    @property
    def finished(self) -> bool:
        return self._finished


class BatchWriter(Writer):
    """Buffer items and flush them through the formatter in batches.

    Without a batch size everything is flushed by ``finish``. With one,
    ``add`` flushes a single batch of ``batch_size`` items (oldest first)
    whenever the buffer grows past the threshold. Only one batch is flushed
    per ``add`` call, so a single very large ``add`` leaves more than one
    batch buffered until later calls or ``finish``.
    """

    def __init__(
        self,
        formatter: Formatter,
        log: RunLogger,
        batch_size: int | None = None,
    ) -> None:
        super().__init__(formatter, log)
        self.batch_size = batch_size
        self._items: list[Any] = []
        self._first_write = True
        self._last_write = False

    def write(self, text: str) -> None:
        """Send a chunk of formatted output to the sink."""
        raise NotImplementedError

    def _write_batch(self, batch: list[Any]) -> None:
        self.log.msg(f"Writing {len(batch)} items")
        fmt = self.formatter
        # Flushes from add() always leave an item buffered, so every batch
        # after the first is non-empty.
        head = fmt.start if self._first_write else fmt.delimiter
        body = fmt.delimiter.join(fmt.format(item) for item in batch)
        tail = fmt.end if self._last_write else ""
        self.write(head + body + tail)
        self._first_write = False

    def add(self, items: Any) -> None:
        self._check_open()
        items = arrify(items)
        if not items:
            return
        self._items.extend(items)
        self._count += len(items)
        if self.batch_size and len(self._items) > self.batch_size:
            batch = self._items[: self.batch_size]
            del self._items[: self.batch_size]
            self._write_batch(batch)

    def finish(self) -> None:
        self._check_open()
        self._last_write = True
        self._finished = True
        batch, self._items = self._items, []
        self._write_batch(batch)

    @property
    def buffered(self) -> int:
        """Number of items added but not yet flushed."""
        return len(self._items)


class StdoutWriter(BatchWriter):
    """Write formatted batches to standard output."""

    def write(self, text: str) -> None:
        click.echo(text, nl=False)

    def finish(self) -> None:
        super().finish()
        click.echo("")


class FileWriter(BatchWriter):
    """Append formatted batches to a file, truncated once at creation."""

    def __init__(
        self,
        path: Path | str,
        formatter: Formatter,
        log: RunLogger,
        batch_size: int | None = None,
    ) -> None:
        super().__init__(formatter, log, batch_size)
        self.path = Path(path)
        self.path.write_text("", encoding="utf-8")

    def write(self, text: str) -> None:
        with self.path.open("a", encoding="utf-8") as f:
            f.write(text)


class ItemFileWriter(Writer):
    """Write every item to its own file, immediately, without framing.

    Files are named ``<out_file>-<n>`` with ``n`` counting from 0.
    """

    def __init__(
        self, path: Path | str, formatter: Formatter, log: RunLogger
    ) -> None:
        super().__init__(formatter, log)
        self.path = Path(path)

    def item_path(self, index: int) -> Path:
        return self.path.with_name(f"{self.path.name}-{index}")

    def add(self, items: Any) -> None:
        self._check_open()
        for item in arrify(items):
            target = self.item_path(self._count)
            target.write_text(self.formatter.format(item), encoding="utf-8")
            logger.debug("Wrote item %d to %s", self._count, target)
            self._count += 1

    def finish(self) -> None:
        self._check_open()
        self._finished = True


def stdout_writer(
    config: RunConfig, log: RunLogger, formatter: Formatter
) -> Writer:
    return StdoutWriter(formatter, log, config.batch_size)


def file_writer(
    config: RunConfig, log: RunLogger, formatter: Formatter
) -> Writer:
    return FileWriter(config.out_file, formatter, log, config.batch_size)


def item_file_writer(
    config: RunConfig, log: RunLogger, formatter: Formatter
) -> Writer:
    return ItemFileWriter(config.out_file, formatter, log)
