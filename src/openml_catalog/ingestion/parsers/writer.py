"""ARFF writer producing text that ``parse_arff`` reads back unchanged."""

from __future__ import annotations

from typing import List

from openml_catalog.core.enums import AttributeKind
from ._common import MISSING, UNKNOWN_LEVEL, quote_value
from .arff import AttributeDescriptor, ParsedTable


def _attribute_line(attr: AttributeDescriptor) -> str:
    name = quote_value(attr.name)
    if attr.kind == AttributeKind.NOMINAL:
        levels = ",".join(quote_value(level) for level in attr.levels)
        return f"@attribute {name} {{{levels}}}"
    if attr.kind == AttributeKind.DATE:
        if attr.date_format:
            return f"@attribute {name} date {quote_value(attr.date_format)}"
        return f"@attribute {name} date"
    if attr.kind == AttributeKind.STRING:
        return f"@attribute {name} string"
    return f"@attribute {name} numeric"


def write_arff(parsed: ParsedTable, missing_marker: str = "?") -> str:
    """Serialize a parsed table as ARFF text.

    Level order is written as declared; whether a nominal attribute is
    ordered is not representable in ARFF and must be passed again to
    ``parse_arff(..., ordered_attributes=...)``.

    Raises:
        ValueError: If a row holds ``UNKNOWN_LEVEL`` (the original value is lost).
    """
    lines: List[str] = []
    if parsed.relation:
        lines.append(f"@relation {quote_value(parsed.relation)}")
    else:
        lines.append("@relation ''")
    lines.append("")
    lines.extend(_attribute_line(a) for a in parsed.attributes)
    lines.append("")
    lines.append("@data")
    for i, row in enumerate(parsed.rows):
        cells: List[str] = []
        for cell in row:
            if cell is MISSING:
                cells.append(missing_marker)
            elif cell is UNKNOWN_LEVEL:
                raise ValueError(f"row {i}: cannot write a cell holding an unknown level")
            else:
                text = str(cell)
                quoted = quote_value(text)
                if quoted == text and text == missing_marker:
                    quoted = f"'{text}'"
                cells.append(quoted)
        lines.append(",".join(cells))
    return "\n".join(lines) + "\n"


__all__ = ["write_arff"]
