"""Compile listing constraints into the catalog's path filter syntax.

The remote service expects filters as ``/``-joined ``<quality>/<value>`` pairs,
where numeric qualities also accept ranges written ``lo..hi``, ``lo..`` or
``..hi``::

    number_features/10/number_instances/500..10000

``compile_filter`` builds such a string from a mapping and ``parse_filter``
reads one back, validating a caller-supplied string before it is sent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from openml_catalog.core.enums import QualityName
from openml_catalog.core.errors import InvalidFilter
from openml_catalog.core.utils import format_number, parse_number

RANGE_SEPARATOR = ".."

# Qualities whose values are numbers and may therefore be given as ranges
NUMERIC_QUALITIES = frozenset(
    {
        QualityName.LIMIT,
        QualityName.OFFSET,
        QualityName.DATA_ID,
        QualityName.DATA_VERSION,
        QualityName.NUMBER_INSTANCES,
        QualityName.NUMBER_FEATURES,
        QualityName.NUMBER_CLASSES,
        QualityName.NUMBER_MISSING_VALUES,
    }
)

Number = Union[int, float]


@dataclass(frozen=True)
class FilterRange:
    """Numeric range constraint; either bound may be open (None)."""

    lo: Optional[Number] = None
    hi: Optional[Number] = None

    def render(self) -> str:
        lo = "" if self.lo is None else format_number(self.lo)
        hi = "" if self.hi is None else format_number(self.hi)
        return f"{lo}{RANGE_SEPARATOR}{hi}"


def _quality(name: Any) -> QualityName:
    try:
        return QualityName(name.value if isinstance(name, QualityName) else str(name))
    except ValueError as e:
        allowed = ", ".join(q.value for q in QualityName)
        raise InvalidFilter(f"Unknown filter quality '{name}'. Allowed: {allowed}") from e


def _check_number(quality: QualityName, value: Any) -> Number:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidFilter(f"{quality.value}: range bound must be a number, got {value!r}")
    if value != value:  # NaN
        raise InvalidFilter(f"{quality.value}: range bound must not be NaN")
    return value


def _to_range(quality: QualityName, value: Any) -> FilterRange:
    if isinstance(value, FilterRange):
        rng = value
    elif isinstance(value, str):
        lo_text, _, hi_text = value.partition(RANGE_SEPARATOR)
        bounds = []
        for text in (lo_text, hi_text):
            if not text.strip():
                bounds.append(None)
                continue
            num = parse_number(text)
            if num is None:
                raise InvalidFilter(f"{quality.value}: invalid range bound '{text}'")
            bounds.append(int(num) if num.is_integer() else num)
        rng = FilterRange(bounds[0], bounds[1])
    else:
        items = list(value)
        if len(items) != 2:
            raise InvalidFilter(
                f"{quality.value}: a range needs exactly two bounds, got {len(items)}"
            )
        rng = FilterRange(items[0], items[1])

    if quality not in NUMERIC_QUALITIES:
        raise InvalidFilter(f"{quality.value}: ranges are only allowed on numeric qualities")
    if rng.lo is None and rng.hi is None:
        raise InvalidFilter(f"{quality.value}: a range needs at least one bound")
    lo = None if rng.lo is None else _check_number(quality, rng.lo)
    hi = None if rng.hi is None else _check_number(quality, rng.hi)
    if lo is not None and hi is not None and lo > hi:
        raise InvalidFilter(f"{quality.value}: lower bound {lo} exceeds upper bound {hi}")
    return FilterRange(lo, hi)


def _render_scalar(quality: QualityName, value: Any) -> str:
    if isinstance(value, bool):
        raise InvalidFilter(f"{quality.value}: boolean values are not supported")
    if isinstance(value, (int, float)):
        if value != value:
            raise InvalidFilter(f"{quality.value}: value must not be NaN")
        return format_number(value)
    text = str(value).strip()
    if not text:
        raise InvalidFilter(f"{quality.value}: value must not be empty")
    if "/" in text:
        raise InvalidFilter(f"{quality.value}: value must not contain '/': {text!r}")
    if quality in NUMERIC_QUALITIES and parse_number(text) is None:
        raise InvalidFilter(f"{quality.value}: expected a number, got {text!r}")
    return text


def _is_range(value: Any) -> bool:
    if isinstance(value, FilterRange):
        return True
    if isinstance(value, str):
        return RANGE_SEPARATOR in value
    return isinstance(value, (list, tuple))


def compile_filter(constraints: Mapping[Any, Any]) -> str:
    """Compile named constraints into a catalog filter path.

    Args:
        constraints: Mapping of quality name to a scalar, a ``FilterRange``,
            a two-item ``[lo, hi]`` sequence (``None`` for an open end) or a
            ``"lo..hi"`` string. Insertion order is preserved.

    Returns:
        The filter path, e.g. ``"number_instances/100..1000/number_features/1..10"``.

    Raises:
        InvalidFilter: On unknown qualities, malformed values or ``lo > hi``.

    Examples:
        >>> compile_filter({"number_instances": [100, 1000], "status": "active"})
        'number_instances/100..1000/status/active'
        >>> compile_filter({"number_features": (None, 10)})
        'number_features/..10'
    """
    parts: List[str] = []
    seen = set()
    for name, value in constraints.items():
        quality = _quality(name)
        if quality in seen:
            raise InvalidFilter(f"Duplicate filter quality '{quality.value}'")
        seen.add(quality)
        if value is None:
            raise InvalidFilter(f"{quality.value}: value must not be None")
        if _is_range(value):
            rendered = _to_range(quality, value).render()
        else:
            rendered = _render_scalar(quality, value)
        parts.append(f"{quality.value}/{rendered}")
    return "/".join(parts)


def parse_filter(path: str) -> Dict[str, Union[str, FilterRange]]:
    """Parse and validate a filter path produced by ``compile_filter`` or by hand.

    Returns:
        Mapping of quality name to the scalar string or ``FilterRange``, in order.

    Raises:
        InvalidFilter: If the path is not a sequence of valid pairs.

    Examples:
        >>> parse_filter("number_features/10/number_instances/500..")
        {'number_features': '10', 'number_instances': FilterRange(lo=500, hi=None)}
    """
    text = path.strip().strip("/")
    if not text:
        return {}
    segments = text.split("/")
    if len(segments) % 2:
        raise InvalidFilter(f"Filter '{path}' must consist of <quality>/<value> pairs")
    out: Dict[str, Union[str, FilterRange]] = {}
    for name, value in zip(segments[0::2], segments[1::2]):
        quality = _quality(name)
        if quality.value in out:
            raise InvalidFilter(f"Duplicate filter quality '{quality.value}'")
        if RANGE_SEPARATOR in value:
            out[quality.value] = _to_range(quality, value)
        else:
            out[quality.value] = _render_scalar(quality, value)
    return out


__all__ = ["FilterRange", "NUMERIC_QUALITIES", "compile_filter", "parse_filter"]
