"""Catalog client and record types."""

from .client import CatalogClient
from .models import Citation, DatasetDescription, DatasetSummary, DeclaredAttribute, Tag

__all__ = [
    "CatalogClient",
    "Citation",
    "DatasetDescription",
    "DatasetSummary",
    "DeclaredAttribute",
    "Tag",
]
