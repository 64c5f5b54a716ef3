"""Type coercion from parsed ARFF tables to typed tables."""

from .engine import coerce, profile_column, strict_scitype, to_parsed
from .policy import ColumnProfile, DistinctCountPolicy, ScitypePolicy

__all__ = [
    "coerce",
    "to_parsed",
    "strict_scitype",
    "profile_column",
    "ColumnProfile",
    "DistinctCountPolicy",
    "ScitypePolicy",
]
