"""Catalog record types.

All records are immutable snapshots produced by ``CatalogClient``:
- DatasetSummary: one entry of a dataset listing, with its qualities
- DatasetDescription: full description, citation data and declared attributes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple, Union

from openml_catalog.core.enums import AttributeKind

Tag = str
QualityValue = Union[int, float, str]


@dataclass(frozen=True)
class DatasetSummary:
    """Listing entry for one dataset.

    Attributes:
        dataset_id: Catalog identifier (>= 0).
        name: Dataset name.
        version: Dataset version number.
        status: Lifecycle status, e.g. "active".
        format: Artifact format reported by the catalog, e.g. "ARFF".
        md5_checksum: Checksum of the artifact, when listed.
        file_id: Identifier of the stored artifact file, when listed.
        qualities: Quality name (snake_case) -> value. Headline qualities are
            exposed as number_instances, number_features, number_classes and
            number_missing_values.
    """

    dataset_id: int
    name: str
    version: int
    status: str
    format: str = ""
    md5_checksum: Optional[str] = None
    file_id: Optional[int] = None
    qualities: Mapping[str, QualityValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.dataset_id < 0:
            raise ValueError(f"dataset_id must be >= 0, got {self.dataset_id}")


@dataclass(frozen=True)
class DeclaredAttribute:
    """Attribute declared for a dataset by the catalog's feature listing."""

    index: int
    name: str
    kind: AttributeKind
    levels: Tuple[str, ...] = ()
    is_target: bool = False
    is_ignore: bool = False
    is_row_identifier: bool = False
    number_of_missing_values: Optional[int] = None


@dataclass(frozen=True)
class Citation:
    """Provenance and citation metadata of a dataset."""

    creator: Tuple[str, ...] = ()
    contributor: Tuple[str, ...] = ()
    collection_date: Optional[str] = None
    citation: Optional[str] = None
    original_data_url: Optional[str] = None
    paper_url: Optional[str] = None
    licence: Optional[str] = None


@dataclass(frozen=True)
class DatasetDescription:
    """Description of one dataset, fetched on demand and never cached."""

    dataset_id: int
    name: str
    version: int
    description: str
    citation: Citation
    file_format: str
    url: str
    md5_checksum: Optional[str] = None
    status: Optional[str] = None
    default_target_attribute: Optional[str] = None
    tags: Tuple[str, ...] = ()
    attributes: Tuple[DeclaredAttribute, ...] = ()

    @property
    def target_attributes(self) -> Tuple[str, ...]:
        return tuple(a.name for a in self.attributes if a.is_target)


__all__ = [
    "Tag",
    "QualityValue",
    "DatasetSummary",
    "DeclaredAttribute",
    "Citation",
    "DatasetDescription",
]
