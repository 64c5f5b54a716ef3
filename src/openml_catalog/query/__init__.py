"""Listing filter compilation."""

from .filters import FilterRange, compile_filter, parse_filter

__all__ = ["FilterRange", "compile_filter", "parse_filter"]
