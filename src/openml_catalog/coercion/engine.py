"""Type coercion: ``ParsedTable`` -> ``Table`` of typed columns.

STRICT mode maps declared kinds 1:1:
    numeric -> continuous
    nominal -> multiclass (ordinedfactor when the levels are ordered)
    string, date -> textual

AUTO mode hands each column with present values to a ``ScitypePolicy``
(``DistinctCountPolicy`` unless another is given). Columns that are entirely
missing keep their STRICT type in both modes.

``overrides`` force the type of named columns in either mode. Coercion is a
pure function of its inputs; column order and row count are preserved.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from openml_catalog.core.enums import AttributeKind, CoercionMode, ScientificType
from openml_catalog.core.errors import CoercionError
from openml_catalog.core.table import Table, TypedColumn
from openml_catalog.core.utils import format_number, parse_number
from openml_catalog.ingestion.parsers import (
    MISSING,
    UNKNOWN_LEVEL,
    AttributeDescriptor,
    Cell,
    ParsedTable,
)
from .policy import ColumnProfile, DistinctCountPolicy, ScitypePolicy


logger = logging.getLogger(__name__)

# Whole numbers outside this range are profiled as non-integral and
# rejected by the count builder (values are stored as int64)
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_STRICT_TYPES = {
    AttributeKind.NUMERIC: ScientificType.CONTINUOUS,
    AttributeKind.STRING: ScientificType.TEXTUAL,
    AttributeKind.DATE: ScientificType.TEXTUAL,
}


def strict_scitype(attr: AttributeDescriptor) -> ScientificType:
    """Scientific type of a declared attribute without looking at the data."""
    if attr.kind == AttributeKind.NOMINAL:
        return ScientificType.ORDEREDFACTOR if attr.ordered else ScientificType.MULTICLASS
    return _STRICT_TYPES[attr.kind]


# ============================================================================
# Cell helpers
# ============================================================================


def _is_missing(cell: Cell) -> bool:
    return cell is MISSING or cell is UNKNOWN_LEVEL


def _number(cell: Cell) -> Optional[float]:
    """Parse a present cell as a finite-or-infinite number; NaN text counts as absent."""
    value = parse_number(cell)  # type: ignore[arg-type]
    if value is None or math.isnan(value):
        return None
    return value


def _whole_number(cell: Cell) -> Optional[int]:
    """Exact integer value of a present cell, or None when it is not a whole number.

    Digit strings are read exactly; anything else goes through float, so
    ``"3.0"`` and ``"1e3"`` count as whole.
    """
    try:
        return int(cell)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        pass
    num = _number(cell)
    if num is None or not math.isfinite(num) or not num.is_integer():
        return None
    return int(num)


def _fits_int64(value: int) -> bool:
    return _INT64_MIN <= value <= _INT64_MAX


def _missing_mask(attr: AttributeDescriptor, cells: Sequence[Cell]) -> List[bool]:
    mask: List[bool] = []
    unknown = 0
    for cell in cells:
        if cell is UNKNOWN_LEVEL:
            unknown += 1
        mask.append(_is_missing(cell))
    if unknown:
        logger.warning(
            "Attribute '%s': %d cells with undeclared levels treated as missing",
            attr.name,
            unknown,
        )
    return mask


def _nan_text(cell: Cell) -> bool:
    return isinstance(cell, str) and cell.strip().lower() == "nan"


def profile_column(attr: AttributeDescriptor, cells: Sequence[Cell]) -> ColumnProfile:
    """Summarize a column for a detection policy."""
    present = [c for c in cells if not _is_missing(c) and not _nan_text(c)]
    numbers = [_number(c) for c in present]
    all_numeric = bool(present) and all(n is not None for n in numbers)
    if all_numeric:
        wholes = [_whole_number(c) for c in present]
        all_integral = all(w is not None and _fits_int64(w) for w in wholes)
        n_distinct = len(set(wholes)) if all_integral else len(set(numbers))
    else:
        all_integral = False
        n_distinct = len(set(present))
    return ColumnProfile(
        name=attr.name,
        declared=attr.kind,
        ordered=attr.ordered,
        n_present=len(present),
        n_distinct=n_distinct,
        all_numeric=all_numeric,
        all_integral=all_integral,
    )


# ============================================================================
# Column builders
# ============================================================================


def _continuous(attr: AttributeDescriptor, cells: Sequence[Cell]) -> TypedColumn:
    mask = _missing_mask(attr, cells)
    values: List[float] = []
    for row, (cell, missing) in enumerate(zip(cells, mask)):
        if missing:
            values.append(0.0)
            continue
        if _nan_text(cell):
            mask[row] = True
            values.append(0.0)
            continue
        num = _number(cell)
        if num is None:
            raise CoercionError(attr.name, row, f"{cell!r} is not a number")
        values.append(num)
    return TypedColumn.from_values(attr.name, ScientificType.CONTINUOUS, values, mask)


def _count(attr: AttributeDescriptor, cells: Sequence[Cell]) -> TypedColumn:
    mask = _missing_mask(attr, cells)
    values: List[int] = []
    for row, (cell, missing) in enumerate(zip(cells, mask)):
        if missing:
            values.append(0)
            continue
        if _nan_text(cell):
            mask[row] = True
            values.append(0)
            continue
        whole = _whole_number(cell)
        if whole is None:
            raise CoercionError(attr.name, row, f"{cell!r} is not a whole number")
        if not _fits_int64(whole):
            raise CoercionError(attr.name, row, f"{cell!r} does not fit in a 64-bit integer")
        values.append(whole)
    return TypedColumn.from_values(attr.name, ScientificType.COUNT, values, mask)


def _finite_labels(
    attr: AttributeDescriptor, cells: Sequence[Cell], mask: Sequence[bool]
) -> Tuple[List[Optional[str]], Tuple[str, ...]]:
    """Return per-cell level labels and the ordered level set.

    Nominal attributes keep their declared levels; other columns use their
    distinct values in lexical order.
    """
    labels = [None if m else str(c) for c, m in zip(cells, mask)]
    if attr.kind == AttributeKind.NOMINAL:
        return labels, attr.levels
    return labels, tuple(sorted({label for label in labels if label is not None}))


def _numeric_value(cell: Cell) -> Union[int, float]:
    whole = _whole_number(cell)
    return whole if whole is not None else _number(cell)  # type: ignore[return-value]


def _numeric_levels(
    cells: Sequence[Cell], mask: Sequence[bool]
) -> Tuple[List[Optional[str]], Tuple[str, ...]]:
    labels = [None if m else format_number(_numeric_value(c)) for c, m in zip(cells, mask)]
    ordered_numbers = sorted({_numeric_value(c) for c, m in zip(cells, mask) if not m})
    return labels, tuple(format_number(n) for n in ordered_numbers)


def _finite(
    attr: AttributeDescriptor,
    cells: Sequence[Cell],
    scitype: ScientificType,
    numeric_levels: bool = False,
) -> TypedColumn:
    mask = _missing_mask(attr, cells)
    if numeric_levels:
        mask = [m or _nan_text(c) for c, m in zip(cells, mask)]
        labels, levels = _numeric_levels(cells, mask)
    else:
        labels, levels = _finite_labels(attr, cells, mask)
    index: Dict[str, int] = {level: i for i, level in enumerate(levels)}
    codes: List[int] = []
    for row, (label, missing) in enumerate(zip(labels, mask)):
        if missing:
            codes.append(0)
            continue
        if label not in index:
            raise CoercionError(attr.name, row, f"{label!r} is not a declared level")
        codes.append(index[label])  # type: ignore[index]
    return TypedColumn.from_values(attr.name, scitype, codes, mask, levels)


def _textual(attr: AttributeDescriptor, cells: Sequence[Cell]) -> TypedColumn:
    mask = _missing_mask(attr, cells)
    values = ["" if m else str(c) for c, m in zip(cells, mask)]
    return TypedColumn.from_values(attr.name, ScientificType.TEXTUAL, values, mask)


def _build(
    attr: AttributeDescriptor,
    cells: Sequence[Cell],
    scitype: ScientificType,
    profile: Optional[ColumnProfile] = None,
) -> TypedColumn:
    if scitype == ScientificType.CONTINUOUS:
        return _continuous(attr, cells)
    if scitype == ScientificType.COUNT:
        return _count(attr, cells)
    if scitype == ScientificType.TEXTUAL:
        return _textual(attr, cells)
    # A finite type inferred from numbers takes its levels from the values
    numeric_levels = profile is not None and profile.all_numeric
    return _finite(attr, cells, scitype, numeric_levels=numeric_levels)


# ============================================================================
# Public API
# ============================================================================


def coerce(
    parsed: ParsedTable,
    mode: Union[CoercionMode, str] = CoercionMode.STRICT,
    *,
    policy: Optional[ScitypePolicy] = None,
    overrides: Optional[Mapping[str, Union[ScientificType, str]]] = None,
) -> Table:
    """Coerce a parsed table into typed columns.

    Args:
        parsed: Output of the parser.
        mode: STRICT (declared kinds) or AUTO (policy-driven detection).
        policy: Detection policy for AUTO; ``DistinctCountPolicy()`` by default.
        overrides: Column name -> scientific type forced in either mode.

    Returns:
        A ``Table`` with one column per attribute, in attribute order.

    Raises:
        CoercionError: With attribute name and row index when a value does not
            fit the chosen type, or when an override names an unknown column.
    """
    mode = CoercionMode(mode)
    policy = policy or DistinctCountPolicy()
    forced: Dict[str, ScientificType] = {
        name: ScientificType(st) for name, st in (overrides or {}).items()
    }
    unknown = sorted(set(forced) - set(parsed.names))
    if unknown:
        raise CoercionError(unknown[0], None, "override names an unknown column")

    columns: List[TypedColumn] = []
    for attr, cells in parsed.columns():
        profile = profile_column(attr, cells)
        if attr.name in forced:
            scitype = forced[attr.name]
            numeric_source = (
                attr.kind != AttributeKind.NOMINAL and profile.all_numeric
            )
            if scitype.is_finite:
                column = _finite(attr, cells, scitype, numeric_levels=numeric_source)
            else:
                column = _build(attr, cells, scitype)
        elif mode == CoercionMode.STRICT or profile.n_present == 0:
            column = _build(attr, cells, strict_scitype(attr))
        else:
            scitype = policy.infer(profile)
            column = _build(attr, cells, scitype, profile)
        logger.debug(
            "Column '%s': %s -> %s (%d missing)",
            attr.name,
            attr.kind.value,
            column.scitype.value,
            column.n_missing,
        )
        columns.append(column)
    return Table(columns)


def to_parsed(table: Table, relation: str = "") -> ParsedTable:
    """Re-derive an untyped ``ParsedTable`` from a typed table.

    continuous/count -> numeric attributes, multiclass -> nominal,
    ordinedfactor -> ordered nominal, textual -> string.
    """
    attributes: List[AttributeDescriptor] = []
    columns: List[List[Cell]] = []
    for col in table.columns():
        if col.scitype in (ScientificType.CONTINUOUS, ScientificType.COUNT):
            attributes.append(AttributeDescriptor(col.name, AttributeKind.NUMERIC))
            cells: List[Cell] = [
                MISSING if v is None else (repr(v) if isinstance(v, float) else str(v))
                for v in col.to_list()
            ]
        elif col.scitype.is_finite:
            attributes.append(
                AttributeDescriptor(
                    col.name,
                    AttributeKind.NOMINAL,
                    col.levels,
                    ordered=col.scitype == ScientificType.ORDEREDFACTOR,
                )
            )
            cells = [MISSING if v is None else v for v in col.to_list()]
        else:
            attributes.append(AttributeDescriptor(col.name, AttributeKind.STRING))
            cells = [MISSING if v is None else v for v in col.to_list()]
        columns.append(cells)
    rows = [tuple(row) for row in zip(*columns)] if columns else []
    return ParsedTable(relation=relation, attributes=tuple(attributes), rows=rows)


__all__ = ["coerce", "to_parsed", "strict_scitype", "profile_column"]
