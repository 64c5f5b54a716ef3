"""Scientific type detection policies for AUTO coercion.

Detection is heuristic. A policy receives a ``ColumnProfile`` (summary
statistics of one column) and returns the scientific type to use. The engine
only calls a policy for columns with at least one present value; all-missing
columns keep their declared type.

``DistinctCountPolicy`` is the default:

- all values numeric and integral, fewer than ``max_levels`` distinct values
  -> ordinedfactor (levels in ascending numeric order)
- all values numeric and integral otherwise -> count
- all values numeric, some non-integral -> continuous
- declared nominal, not all numeric -> multiclass, or ordinedfactor when
  the declaration is ordered
- string/date, fewer than ``max_levels`` distinct values and at least one
  repeat -> multiclass
- anything else -> textual
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from openml_catalog.core.config import DEFAULT_MAX_LEVELS
from openml_catalog.core.enums import AttributeKind, ScientificType


@dataclass(frozen=True)
class ColumnProfile:
    """Summary of one column as seen by a detection policy.

    Attributes:
        name: Column name.
        declared: Declared attribute kind.
        ordered: Whether declared nominal levels are ordered.
        n_present: Number of non-missing cells.
        n_distinct: Number of distinct non-missing values.
        all_numeric: Every present value parses as a number.
        all_integral: Every present value is a whole number (implies all_numeric).
    """

    name: str
    declared: AttributeKind
    ordered: bool
    n_present: int
    n_distinct: int
    all_numeric: bool
    all_integral: bool

    @property
    def has_repeats(self) -> bool:
        return self.n_distinct < self.n_present


class ScitypePolicy(Protocol):
    """Strategy deciding the scientific type of a column in AUTO mode."""

    def infer(self, profile: ColumnProfile) -> ScientificType:  # pragma: no cover - protocol
        ...


@dataclass(frozen=True)
class DistinctCountPolicy:
    """Default policy: distinct-value count plus integrality.

    Args:
        max_levels: Columns with fewer distinct values than this are treated
            as finite (ordinedfactor for numbers, multiclass for text).
    """

    max_levels: int = DEFAULT_MAX_LEVELS

    def __post_init__(self) -> None:
        if self.max_levels < 1:
            raise ValueError(f"max_levels must be >= 1, got {self.max_levels}")

    def infer(self, profile: ColumnProfile) -> ScientificType:
        few = profile.n_distinct < self.max_levels
        if profile.all_numeric:
            if not profile.all_integral:
                return ScientificType.CONTINUOUS
            return ScientificType.ORDEREDFACTOR if few else ScientificType.COUNT
        if profile.declared == AttributeKind.NOMINAL:
            return ScientificType.ORDEREDFACTOR if profile.ordered else ScientificType.MULTICLASS
        if few and profile.has_repeats:
            return ScientificType.MULTICLASS
        return ScientificType.TEXTUAL


__all__ = ["ColumnProfile", "ScitypePolicy", "DistinctCountPolicy"]
