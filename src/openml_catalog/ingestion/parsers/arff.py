"""ARFF parser.

Turns the raw bytes of an ARFF artifact into an untyped ``ParsedTable``
using a two-state machine (HEADER -> DATA). Attribute declarations are
collected in the header; after ``@data`` every non-blank, non-comment line is
a row, either dense (``a,1,?``) or sparse (``{0 a, 2 ?}``).
Lines end at LF (CRLF tolerated); form feeds and Unicode line separators
are ordinary characters.

Cells stay as strings; numeric conversion happens in the coercion engine.
The unquoted missing marker becomes ``MISSING``. Nominal values are checked
against the declared levels: in strict mode an undeclared value raises
``FormatError``, in lenient mode it becomes ``UNKNOWN_LEVEL``.

Malformed rows raise by default. ``on_bad_row="skip"`` drops them instead,
counting them in ``ParsedTable.skipped_rows``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from openml_catalog.core.enums import AttributeKind
from openml_catalog.core.errors import FormatError
from ._common import (
    MISSING,
    QUOTES,
    UNKNOWN_LEVEL,
    LineType,
    ParseState,
    detect_line_type,
    iter_lines,
    read_quoted,
    split_cells,
)


logger = logging.getLogger(__name__)

Cell = Union[str, object]

_NUMERIC_TYPES = {"numeric", "real", "integer"}


@dataclass(frozen=True)
class AttributeDescriptor:
    """Declared ARFF attribute.

    Attributes:
        name: Attribute name.
        kind: Declared kind (numeric, nominal, string, date).
        levels: Declared level set of a nominal attribute, in order.
        date_format: Format string of a date attribute, when given.
        ordered: True when the levels carry an explicit order.
    """

    name: str
    kind: AttributeKind
    levels: Tuple[str, ...] = ()
    date_format: Optional[str] = None
    ordered: bool = False


@dataclass
class ParsedTable:
    """Untyped table: attribute declarations plus rows of raw cells."""

    relation: str
    attributes: Tuple[AttributeDescriptor, ...]
    rows: List[Tuple[Cell, ...]] = field(default_factory=list)
    skipped_rows: int = field(default=0, compare=False)

    @property
    def n_rows(self) -> int:
        return len(self.rows)

    @property
    def n_columns(self) -> int:
        return len(self.attributes)

    @property
    def names(self) -> List[str]:
        return [a.name for a in self.attributes]

    def column(self, index: int) -> List[Cell]:
        return [row[index] for row in self.rows]

    def columns(self) -> Iterator[Tuple[AttributeDescriptor, List[Cell]]]:
        for i, attr in enumerate(self.attributes):
            yield attr, self.column(i)


# ============================================================================
# Header
# ============================================================================


def _split_name(rest: str, line_no: int) -> Tuple[str, str]:
    """Split ``<name> <type...>`` where the name may be quoted."""
    rest = rest.strip()
    if not rest:
        raise FormatError(line_no, "missing attribute name")
    if rest[0] in QUOTES:
        name, end = read_quoted(rest, 0, line_no)
        return name, rest[end:].strip()
    end = len(rest)
    for i, ch in enumerate(rest):
        if ch in " \t{":
            end = i
            break
    return rest[:end], rest[end:].strip()


def _parse_attribute(
    line: str, line_no: int, ordered_attributes: frozenset
) -> AttributeDescriptor:
    rest = line.strip()[len("@attribute"):]
    name, type_spec = _split_name(rest, line_no)
    if not type_spec:
        raise FormatError(line_no, f"attribute '{name}' has no type")
    lowered = type_spec.lower()
    ordered = name in ordered_attributes

    if type_spec.startswith("{"):
        if not type_spec.endswith("}"):
            raise FormatError(line_no, f"unterminated level set for attribute '{name}'")
        inner = type_spec[1:-1]
        levels: List[str] = []
        if inner.strip():
            levels = [value for value, _ in split_cells(inner, line_no)]
        if len(set(levels)) != len(levels):
            raise FormatError(line_no, f"duplicate levels declared for attribute '{name}'")
        return AttributeDescriptor(name, AttributeKind.NOMINAL, tuple(levels), ordered=ordered)
    if ordered:
        raise FormatError(line_no, f"only nominal attributes can be ordered, not '{name}'")
    if lowered in _NUMERIC_TYPES:
        return AttributeDescriptor(name, AttributeKind.NUMERIC)
    if lowered == "string":
        return AttributeDescriptor(name, AttributeKind.STRING)
    if lowered.split(None, 1)[0] == "date":
        fmt_text = type_spec[4:].strip()
        fmt: Optional[str] = None
        if fmt_text:
            fmt = read_quoted(fmt_text, 0, line_no)[0] if fmt_text[0] in QUOTES else fmt_text
        return AttributeDescriptor(name, AttributeKind.DATE, date_format=fmt)
    if lowered.startswith("relational"):
        raise FormatError(line_no, f"relational attribute '{name}' is not supported")
    raise FormatError(line_no, f"unknown type {type_spec!r} for attribute '{name}'")


def _parse_relation(line: str, line_no: int) -> str:
    rest = line.strip()[len("@relation"):].strip()
    if rest and rest[0] in QUOTES:
        return read_quoted(rest, 0, line_no)[0]
    return rest


# ============================================================================
# Data rows
# ============================================================================


def _resolve_cell(
    value: str,
    quoted: bool,
    attr: AttributeDescriptor,
    missing_marker: str,
    strict: bool,
    line_no: int,
    row_index: int,
) -> Cell:
    if not quoted and value == missing_marker:
        return MISSING
    if attr.kind == AttributeKind.NOMINAL and value not in attr.levels:
        if strict:
            declared = "no levels" if not attr.levels else f"levels {list(attr.levels)}"
            raise FormatError(
                line_no,
                f"row {row_index}: value {value!r} of attribute '{attr.name}' "
                f"is not among its declared {declared}",
            )
        return UNKNOWN_LEVEL
    return value


def _sparse_default(attr: AttributeDescriptor) -> Optional[str]:
    """Value of a cell omitted from a sparse row; None when there is none to take."""
    if attr.kind == AttributeKind.NOMINAL:
        return attr.levels[0] if attr.levels else None
    if attr.kind == AttributeKind.NUMERIC:
        return "0"
    return ""


def _parse_row(
    text: str,
    attributes: Sequence[AttributeDescriptor],
    missing_marker: str,
    strict: bool,
    line_no: int,
    row_index: int,
) -> Tuple[Cell, ...]:
    n_attrs = len(attributes)
    if text.startswith("{") and text.endswith("}"):
        return _parse_sparse_row(
            text[1:-1], attributes, missing_marker, strict, line_no, row_index
        )
    cells = split_cells(text, line_no)
    if len(cells) != n_attrs:
        last_value, last_quoted = cells[-1]
        if (
            len(cells) == n_attrs + 1
            and not last_quoted
            and last_value.startswith("{")
            and last_value.endswith("}")
        ):
            raise FormatError(line_no, f"row {row_index}: instance weights are not supported")
        raise FormatError(
            line_no, f"row {row_index}: expected {n_attrs} values, found {len(cells)}"
        )
    return tuple(
        _resolve_cell(value, quoted, attr, missing_marker, strict, line_no, row_index)
        for (value, quoted), attr in zip(cells, attributes)
    )


def _parse_sparse_row(
    inner: str,
    attributes: Sequence[AttributeDescriptor],
    missing_marker: str,
    strict: bool,
    line_no: int,
    row_index: int,
) -> Tuple[Cell, ...]:
    values: Dict[int, Cell] = {}
    if inner.strip():
        for item in _split_sparse_items(inner, line_no):
            parts = item.strip().split(None, 1)
            if len(parts) != 2:
                raise FormatError(line_no, f"row {row_index}: malformed sparse value {item!r}")
            index_text, value_text = parts
            try:
                index = int(index_text)
            except ValueError as e:
                raise FormatError(
                    line_no, f"row {row_index}: invalid sparse index {index_text!r}"
                ) from e
            if not 0 <= index < len(attributes):
                raise FormatError(
                    line_no, f"row {row_index}: sparse index {index} is out of range"
                )
            if index in values:
                raise FormatError(line_no, f"row {row_index}: sparse index {index} repeated")
            cells = split_cells(value_text.strip(), line_no)
            if len(cells) != 1:
                raise FormatError(line_no, f"row {row_index}: malformed sparse value {item!r}")
            value, quoted = cells[0]
            values[index] = _resolve_cell(
                value, quoted, attributes[index], missing_marker, strict, line_no, row_index
            )
    row: List[Cell] = []
    for i, attr in enumerate(attributes):
        if i in values:
            row.append(values[i])
            continue
        default = _sparse_default(attr)
        if default is None:
            row.append(MISSING)
        else:
            row.append(
                _resolve_cell(default, False, attr, missing_marker, strict, line_no, row_index)
            )
    return tuple(row)


def _split_sparse_items(inner: str, line_no: int) -> List[str]:
    """Split ``0 a, 2 'x, y'`` on top-level commas, keeping quoted text raw."""
    items: List[str] = []
    start = 0
    i = 0
    while i < len(inner):
        ch = inner[i]
        if ch in QUOTES:
            _, i = read_quoted(inner, i, line_no)
            continue
        if ch == ",":
            items.append(inner[start:i])
            start = i + 1
        i += 1
    items.append(inner[start:])
    return items


# ============================================================================
# Entry point
# ============================================================================


def _decode(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        return data
    try:
        return bytes(data).decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FormatError(0, f"artifact is not valid UTF-8: {e}") from e


def parse_arff(
    data: Union[bytes, str],
    *,
    strict: bool = True,
    missing_marker: str = "?",
    ordered_attributes: Iterable[str] = (),
    on_bad_row: str = "raise",
) -> ParsedTable:
    """Parse an ARFF artifact into a ``ParsedTable``.

    Args:
        data: Raw artifact bytes (UTF-8, BOM tolerated) or text.
        strict: Reject nominal values outside the declared levels. When
            False such cells become ``UNKNOWN_LEVEL``.
        missing_marker: Unquoted token that denotes a missing cell.
        ordered_attributes: Names of nominal attributes whose declared level
            order is meaningful.
        on_bad_row: "raise" (default) or "skip" to drop malformed data rows.

    Returns:
        The parsed table; cells are strings or the ``MISSING`` /
        ``UNKNOWN_LEVEL`` markers.

    Raises:
        FormatError: With the 1-based line number of the problem.
    """
    if on_bad_row not in ("raise", "skip"):
        raise ValueError(f"on_bad_row must be 'raise' or 'skip', got {on_bad_row!r}")
    ordered = frozenset(ordered_attributes)
    text = _decode(data)

    state = ParseState.HEADER
    relation = ""
    attributes: List[AttributeDescriptor] = []
    rows: List[Tuple[Cell, ...]] = []
    row_index = 0
    skipped = 0

    for line_no, line in enumerate(iter_lines(text), start=1):
        line_type = detect_line_type(line)
        if line_type in (LineType.BLANK, LineType.COMMENT):
            continue

        if state == ParseState.HEADER:
            if line_type == LineType.RELATION:
                relation = _parse_relation(line, line_no)
            elif line_type == LineType.ATTRIBUTE:
                attr = _parse_attribute(line, line_no, ordered)
                if any(a.name == attr.name for a in attributes):
                    raise FormatError(line_no, f"attribute '{attr.name}' declared twice")
                attributes.append(attr)
            elif line_type == LineType.DATA_MARKER:
                if not attributes:
                    raise FormatError(line_no, "@data section before any @attribute declaration")
                state = ParseState.DATA
                logger.debug("Header done: %d attributes", len(attributes))
            elif line_type == LineType.END:
                raise FormatError(line_no, "@end outside a relational attribute")
            else:
                if not attributes:
                    raise FormatError(line_no, "data line before any @attribute declaration")
                raise FormatError(line_no, "data line before the @data marker")
            continue

        # ParseState.DATA
        if line_type != LineType.ROW:
            raise FormatError(line_no, f"unexpected {line.strip().split()[0]} in the data section")
        try:
            rows.append(
                _parse_row(line.strip(), attributes, missing_marker, strict, line_no, row_index)
            )
        except FormatError as e:
            if on_bad_row == "raise":
                raise
            skipped += 1
            logger.debug("Skipping bad row: %s", e)
        row_index += 1

    if state == ParseState.HEADER:
        if not attributes:
            raise FormatError(0, "no @attribute declarations found")
        raise FormatError(0, "missing @data marker")
    if skipped:
        logger.warning("Skipped %d malformed data rows out of %d", skipped, row_index)
    undeclared = sorted(ordered - {a.name for a in attributes})
    if undeclared:
        raise FormatError(0, f"ordered attributes not declared: {undeclared}")

    return ParsedTable(
        relation=relation, attributes=tuple(attributes), rows=rows, skipped_rows=skipped
    )


__all__ = ["AttributeDescriptor", "ParsedTable", "Cell", "parse_arff"]
