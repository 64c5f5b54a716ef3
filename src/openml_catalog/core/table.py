"""Typed columns and the caller-facing table.

A ``Table`` is an ordered mapping of column name to ``TypedColumn``. Every
column stores dense values next to an explicit missing bitmap; the value in a
missing slot is a neutral filler and carries no meaning on its own.

Views:
- ``Table.to_pandas()`` -> pandas.DataFrame (nullable / categorical dtypes)
- ``Table.to_polars()`` -> polars.DataFrame (nulls, Categorical / Enum)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import polars as pl

from .enums import ScientificType
from .errors import TableError


_VALUE_DTYPES = {
    ScientificType.CONTINUOUS: np.float64,
    ScientificType.COUNT: np.int64,
    ScientificType.MULTICLASS: np.int64,
    ScientificType.ORDEREDFACTOR: np.int64,
    ScientificType.TEXTUAL: object,
}


@dataclass(frozen=True, eq=False)
class TypedColumn:
    """A named column with a scientific type and a missing bitmap.

    Attributes:
        name: Column name.
        scitype: Scientific type of the column.
        values: Dense values. float64 for continuous, int64 for count, int64
            level codes for multiclass/ordinedfactor, str objects for textual.
        missing: Boolean bitmap, True where the cell is missing.
        levels: Level labels for multiclass/ordinedfactor columns, in order.
    """

    name: str
    scitype: ScientificType
    values: np.ndarray
    missing: np.ndarray
    levels: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.values.shape != self.missing.shape or self.values.ndim != 1:
            raise TableError(
                f"Column '{self.name}': values and missing bitmap must be 1-d and equally long"
            )
        if self.missing.dtype != np.bool_:
            raise TableError(f"Column '{self.name}': missing bitmap must be boolean")
        if self.scitype.is_finite:
            present = self.values[~self.missing]
            if present.size and (present.min() < 0 or present.max() >= len(self.levels)):
                raise TableError(f"Column '{self.name}': level code out of range")
        elif self.levels:
            raise TableError(f"Column '{self.name}': only finite columns carry levels")

    @classmethod
    def from_values(
        cls,
        name: str,
        scitype: ScientificType,
        values: Sequence[Any],
        missing: Sequence[bool],
        levels: Sequence[str] = (),
    ) -> "TypedColumn":
        """Build a column from plain sequences, filling missing slots with neutral values."""
        dtype = _VALUE_DTYPES[scitype]
        mask = np.asarray(missing, dtype=bool)
        filler: Any = "" if dtype is object else 0
        cleaned = [filler if m else v for v, m in zip(values, mask)]
        if dtype is object:
            arr = np.empty(len(cleaned), dtype=object)
            arr[:] = [str(v) for v in cleaned]
        else:
            arr = np.asarray(cleaned, dtype=dtype).reshape(len(cleaned))
        return cls(name=name, scitype=scitype, values=arr, missing=mask, levels=tuple(levels))

    def __len__(self) -> int:
        return int(self.values.shape[0])

    @property
    def n_missing(self) -> int:
        return int(self.missing.sum())

    def to_list(self) -> List[Any]:
        """Return Python values with None for missing cells (level labels for finite columns)."""
        out: List[Any] = []
        for v, m in zip(self.values.tolist(), self.missing.tolist()):
            if m:
                out.append(None)
            elif self.scitype.is_finite:
                out.append(self.levels[v])
            else:
                out.append(v)
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypedColumn):
            return NotImplemented
        if (self.name, self.scitype, self.levels) != (other.name, other.scitype, other.levels):
            return False
        if not np.array_equal(self.missing, other.missing):
            return False
        present = ~self.missing
        return bool(np.array_equal(self.values[present], other.values[present]))

    __hash__ = None  # type: ignore[assignment]


class Table:
    """Ordered mapping of column name to ``TypedColumn`` with a uniform row count."""

    def __init__(self, columns: Iterable[TypedColumn]) -> None:
        self._columns: Dict[str, TypedColumn] = {}
        n_rows: Optional[int] = None
        for col in columns:
            if col.name in self._columns:
                raise TableError(f"Duplicate column name: {col.name}")
            if n_rows is None:
                n_rows = len(col)
            elif len(col) != n_rows:
                raise TableError(
                    f"Column '{col.name}' has {len(col)} rows, expected {n_rows}"
                )
            self._columns[col.name] = col
        self._n_rows = n_rows or 0

    @property
    def n_rows(self) -> int:
        return self._n_rows

    @property
    def names(self) -> List[str]:
        return list(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __getitem__(self, name: str) -> TypedColumn:
        return self._columns[name]

    def __contains__(self, name: object) -> bool:
        return name in self._columns

    def columns(self) -> List[TypedColumn]:
        return list(self._columns.values())

    def schema(self) -> Dict[str, ScientificType]:
        """Return column name -> scientific type, in column order."""
        return {name: col.scitype for name, col in self._columns.items()}

    def select(self, names: Sequence[str]) -> "Table":
        """Return a new table holding ``names`` in the requested order."""
        missing = [n for n in names if n not in self._columns]
        if missing:
            raise TableError(f"Unknown columns: {missing}")
        return Table(self._columns[n] for n in names)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self.names == other.names and all(
            self._columns[n] == other._columns[n] for n in self.names
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        cols = ", ".join(f"{n}:{c.scitype.value}" for n, c in self._columns.items())
        return f"Table({self._n_rows} rows; {cols})"

    # ------------------------------------------------------------------
    # Container views
    # ------------------------------------------------------------------
    def to_pandas(self) -> pd.DataFrame:
        """Convert to a pandas DataFrame.

        continuous -> float64 with NaN, count -> Int64, multiclass/ordinedfactor
        -> Categorical, textual -> string.
        """
        data: Dict[str, Any] = {}
        for name, col in self._columns.items():
            data[name] = _pandas_series(col)
        return pd.DataFrame(data, index=pd.RangeIndex(self._n_rows))

    def to_polars(self) -> pl.DataFrame:
        """Convert to a polars DataFrame.

        continuous -> Float64, count -> Int64, multiclass -> Categorical,
        ordinedfactor -> Enum (level order kept), textual -> Utf8.
        """
        return pl.DataFrame([_polars_series(col) for col in self._columns.values()])


def _pandas_series(col: TypedColumn) -> pd.Series:
    if col.scitype == ScientificType.CONTINUOUS:
        values = col.values.astype(np.float64, copy=True)
        values[col.missing] = np.nan
        return pd.Series(values, name=col.name)
    if col.scitype == ScientificType.COUNT:
        return pd.Series(
            pd.arrays.IntegerArray(col.values.astype(np.int64), col.missing.copy()),
            name=col.name,
        )
    if col.scitype.is_finite:
        codes = np.where(col.missing, -1, col.values)
        cat = pd.Categorical.from_codes(
            codes,
            categories=list(col.levels),
            ordered=col.scitype == ScientificType.ORDEREDFACTOR,
        )
        return pd.Series(cat, name=col.name)
    return pd.Series(pd.array(col.to_list(), dtype="string"), name=col.name)


def _polars_series(col: TypedColumn) -> pl.Series:
    values = col.to_list()
    if col.scitype == ScientificType.CONTINUOUS:
        return pl.Series(col.name, values, dtype=pl.Float64)
    if col.scitype == ScientificType.COUNT:
        return pl.Series(col.name, values, dtype=pl.Int64)
    if col.scitype == ScientificType.ORDEREDFACTOR:
        return pl.Series(col.name, values, dtype=pl.Enum(list(col.levels)))
    if col.scitype == ScientificType.MULTICLASS:
        return pl.Series(col.name, values, dtype=pl.Utf8).cast(pl.Categorical)
    return pl.Series(col.name, values, dtype=pl.Utf8)


Container = Union[None, str, Callable[[Table], Any]]


def build_table(columns: Iterable[TypedColumn], container: Container = None) -> Any:
    """Assemble typed columns into a table, optionally mapped into a container.

    Args:
        columns: Typed columns in output order.
        container: None for a ``Table``, "pandas" or "polars" for the
            matching DataFrame, or any callable receiving the ``Table``.

    Returns:
        The ``Table`` or the container built from it.

    Raises:
        TableError: On non-uniform row counts, duplicate names or an unknown container.
    """
    table = Table(columns)
    if container is None:
        return table
    if callable(container):
        return container(table)
    if container == "pandas":
        return table.to_pandas()
    if container == "polars":
        return table.to_polars()
    raise TableError(f"Unknown container: {container!r}")


__all__ = ["TypedColumn", "Table", "build_table"]
