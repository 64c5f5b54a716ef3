"""Shared parser helpers, cell markers and state enums."""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Iterator, List, Tuple

from openml_catalog.core.errors import FormatError


logger = logging.getLogger(__name__)


class ParseState(Enum):
    """
    State machine states for parsing an ARFF file:
    - HEADER: Reading @relation / @attribute declarations
    - DATA: Reading data rows after the @data marker
    """

    HEADER = auto()
    DATA = auto()


class LineType(Enum):
    """
    Line types of an ARFF file:
    - BLANK: Empty or whitespace only
    - COMMENT: Starts with '%'
    - RELATION: @relation declaration
    - ATTRIBUTE: @attribute declaration
    - DATA_MARKER: The @data section marker
    - END: @end (closes a relational attribute block)
    - ROW: Anything else, i.e. a data row
    """

    BLANK = auto()
    COMMENT = auto()
    RELATION = auto()
    ATTRIBUTE = auto()
    DATA_MARKER = auto()
    END = auto()
    ROW = auto()


class _CellMarker:
    """Singleton marker stored in place of a cell value."""

    __slots__ = ("_label",)

    def __init__(self, label: str) -> None:
        self._label = label

    def __repr__(self) -> str:
        return self._label

    def __reduce__(self):
        return self._label


MISSING = _CellMarker("MISSING")
UNKNOWN_LEVEL = _CellMarker("UNKNOWN_LEVEL")

QUOTES = ("'", '"')
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"', "%": "%"}
_REVERSE_ESCAPES = {"\\": "\\\\", "'": "\\'", "\n": "\\n", "\t": "\\t", "\r": "\\r"}
# Characters str.splitlines treats as line breaks besides \n and \r
_LINE_SEPARATORS = "\x0b\x0c\x1c\x1d\x1e\x85\u2028\u2029"


def iter_lines(text: str) -> Iterator[str]:
    """Yield the lines of ``text``, broken on LF only (a trailing CR is dropped).

    Form feeds and Unicode separators may appear inside cells and do not
    end a line.
    """
    for line in text.split("\n"):
        yield line[:-1] if line.endswith("\r") else line


def detect_line_type(line: str) -> LineType:
    """Classify a raw line by its first token."""
    s = line.strip()
    if not s:
        return LineType.BLANK
    if s.startswith("%"):
        return LineType.COMMENT
    if s.startswith("@"):
        keyword = s.split(None, 1)[0].lower()
        if keyword == "@relation":
            return LineType.RELATION
        if keyword == "@attribute":
            return LineType.ATTRIBUTE
        if keyword == "@data":
            return LineType.DATA_MARKER
        if keyword == "@end":
            return LineType.END
    return LineType.ROW


def read_quoted(text: str, start: int, line_no: int) -> Tuple[str, int]:
    """Read a quoted token starting at ``text[start]``.

    Returns:
        The unescaped content and the index just past the closing quote.

    Raises:
        FormatError: If the quote is not terminated on this line.
    """
    quote = text[start]
    out: List[str] = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            out.append(_ESCAPES.get(nxt, "\\" + nxt))
            i += 2
            continue
        if ch == quote:
            return "".join(out), i + 1
        out.append(ch)
        i += 1
    raise FormatError(line_no, f"unterminated quote starting at column {start + 1}")


def split_cells(text: str, line_no: int) -> List[Tuple[str, bool]]:
    """Split a comma separated list honouring quotes.

    Returns:
        (value, was_quoted) pairs; unquoted values are stripped.
    """
    cells: List[Tuple[str, bool]] = []
    i = 0
    n = len(text)
    while True:
        while i < n and text[i] in " \t":
            i += 1
        if i < n and text[i] in QUOTES:
            value, i = read_quoted(text, i, line_no)
            while i < n and text[i] in " \t":
                i += 1
            if i < n and text[i] != ",":
                raise FormatError(
                    line_no, f"unexpected character {text[i]!r} after quoted value"
                )
            cells.append((value, True))
        else:
            j = text.find(",", i)
            end = n if j == -1 else j
            cells.append((text[i:end].strip(), False))
            i = end
        if i >= n:
            break
        i += 1  # skip the comma
    return cells


def needs_quoting(value: str) -> bool:
    if value == "" or value != value.strip() or value.startswith("@"):
        return True
    return any(ch in value for ch in ",'\"%{}\\ \t\n\r?" + _LINE_SEPARATORS)


def quote_value(value: str) -> str:
    """Quote ``value`` for ARFF output when necessary."""
    if not needs_quoting(value):
        return value
    escaped = "".join(_REVERSE_ESCAPES.get(ch, ch) for ch in value)
    return f"'{escaped}'"


__all__ = [
    "ParseState",
    "LineType",
    "MISSING",
    "UNKNOWN_LEVEL",
    "iter_lines",
    "detect_line_type",
    "read_quoted",
    "split_cells",
    "quote_value",
]
