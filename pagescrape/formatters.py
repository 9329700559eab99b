"""Output formatters.

A formatter serializes one item at a time and supplies the framing tokens a
writer wraps batches in:

    start + delimiter.join(format(item) for item in items) + end

Three formatters are built in:

- ``RawFormatter``: ``str(item)`` with no framing
- ``JSONFormatter``: a JSON array, one element per item
- ``CSVFormatter``: CRLF-separated rows with a header row

New formatters should subclass ``Formatter`` (or one of the built-ins) and
be registered under a name with ``Registry.register_formatter``::

    class PipeFormatter(RawFormatter):
        delimiter = "|"

    registry.register_formatter("pipe", lambda config: PipeFormatter())
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from typing import Any


class Formatter:
    """Base formatter contract.

    Attributes:
        start: Emitted once, before the first item.
        delimiter: Emitted between items and between batches.
        end: Emitted once, after the last item.
    """

    start: str = ""
    delimiter: str = ""
    end: str = ""

    def format(self, item: Any) -> str:
        raise NotImplementedError


class RawFormatter(Formatter):
    """Stringify each item directly, with no framing."""

    def format(self, item: Any) -> str:
        return str(item)


def _finite(value: Any) -> Any:
    """Replace NaN and infinities with None, recursing into containers."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, Mapping):
        return {key: _finite(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite(item) for item in value]
    return value


def to_json(value: Any) -> str:
    """Encode a value the way ``JSON.stringify`` does.

    Compact separators, non-ASCII left as-is, NaN and infinities become
    ``null``, and anything that is not a JSON type falls back to its string
    form.
    """
    return json.dumps(
        _finite(value),
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=str,
    )


class JSONFormatter(Formatter):
    """Emit items as the elements of a single JSON array."""

    start = "["
    delimiter = ","
    end = "]"

    def format(self, item: Any) -> str:
        return to_json(item)


class CSVFormatter(Formatter):
    """Emit items as CSV rows.

    Mappings are laid out by field name; lists and tuples by position. If
    no fields are configured, they are inferred from the first item (its
    keys, or ``Column 1..N`` for list-shaped items) and the header row is
    emitted in front of the first data row. Rows are padded with empty
    cells or truncated to the field count.

    Each cell is JSON-encoded and its escaped double quotes are collapsed to
    CSV-style doubled quotes, so strings are always quoted and numbers are
    not.
    """

    delimiter = "\r\n"
    end = ""

    def __init__(self, fields: Sequence[str] | None = None) -> None:
        self.fields: list[str] | None = (
            list(fields) if fields is not None else None
        )
        self.start = (
            self._make_row(self.fields) + self.delimiter
            if self.fields is not None
            else ""
        )

    @staticmethod
    def _cell(value: Any) -> str:
        value = _finite(value)
        if value is None:
            value = ""
        return to_json(value).replace('\\"', '""')

    def _make_row(self, values: Sequence[Any]) -> str:
        return ",".join(self._cell(value) for value in values)

    def _infer_fields(self, item: Any) -> list[str]:
        if isinstance(item, Mapping):
            return [str(key) for key in item]
        if isinstance(item, (list, tuple)):
            return [f"Column {i + 1}" for i in range(len(item))]
        return ["Column 1"]

    def format(self, item: Any) -> str:
        header = ""
        if self.fields is None:
            self.fields = self._infer_fields(item)
            header = self._make_row(self.fields) + self.delimiter

        if isinstance(item, Mapping):
            values = [item.get(field) for field in self.fields]
        elif isinstance(item, (list, tuple)):
            values = list(item)
        else:
            values = [item]

        width = len(self.fields)
        values = values[:width] + [""] * (width - len(values))
        return header + self._make_row(values)
