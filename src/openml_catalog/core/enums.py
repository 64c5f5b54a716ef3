"""Core enumerations used across the package."""

from __future__ import annotations

from enum import Enum


class QualityName(str, Enum):
    """Names accepted as constraints in a catalog listing filter.

    Values are the literal path segments used by the remote service.
    """

    TAG = "tag"
    STATUS = "status"
    LIMIT = "limit"
    OFFSET = "offset"
    DATA_ID = "data_id"
    DATA_NAME = "data_name"
    DATA_VERSION = "data_version"
    UPLOADER = "uploader"
    NUMBER_INSTANCES = "number_instances"
    NUMBER_FEATURES = "number_features"
    NUMBER_CLASSES = "number_classes"
    NUMBER_MISSING_VALUES = "number_missing_values"


class AttributeKind(str, Enum):
    """Declared attribute kinds of the ARFF format."""

    NUMERIC = "numeric"
    NOMINAL = "nominal"
    STRING = "string"
    DATE = "date"


class ScientificType(str, Enum):
    """Semantic column classification used in typed tables."""

    CONTINUOUS = "continuous"
    COUNT = "count"
    MULTICLASS = "multiclass"
    ORDEREDFACTOR = "ordinedfactor"
    TEXTUAL = "textual"

    @property
    def is_finite(self) -> bool:
        return self in (ScientificType.MULTICLASS, ScientificType.ORDEREDFACTOR)


class CoercionMode(str, Enum):
    """How declared attribute kinds are turned into scientific types.

    STRICT maps each declared kind 1:1; AUTO re-examines the data.
    """

    STRICT = "strict"
    AUTO = "auto"


__all__ = ["QualityName", "AttributeKind", "ScientificType", "CoercionMode"]
