"""Artifact parsers.

Public API:
 - parse_arff, write_arff
 - ParsedTable, AttributeDescriptor
 - MISSING, UNKNOWN_LEVEL cell markers
 - ParseState, LineType (state machine enums)
"""

from ._common import (
    MISSING,
    UNKNOWN_LEVEL,
    LineType,
    ParseState,
    detect_line_type,
    split_cells,
)
from .arff import AttributeDescriptor, Cell, ParsedTable, parse_arff
from .writer import write_arff

__all__ = [
    "parse_arff",
    "write_arff",
    "ParsedTable",
    "AttributeDescriptor",
    "Cell",
    "MISSING",
    "UNKNOWN_LEVEL",
    "ParseState",
    "LineType",
    "detect_line_type",
    "split_cells",
]
