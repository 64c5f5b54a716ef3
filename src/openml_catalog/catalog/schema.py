"""Versioned response schemas for the catalog JSON API.

Each record kind is declared as a ``RecordSchema`` listing its fields with an
expected shape and whether the field is required. ``decode_record`` checks
presence and shape explicitly and never passes unknown fields through: in
strict mode they raise ``DecodeError``, otherwise they are dropped with a
debug log.

Shapes
------
- "str": JSON string (numbers are accepted and stringified)
- "int": JSON integer or a string holding one (the API quotes most numbers)
- "bool": JSON boolean or "true"/"false"
- "str_list": a string or a list of strings; the API collapses one-element
  lists into a bare value
- "records": an object or a list of objects, same collapsing rule
- "any": raw value, type checked by the caller
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from openml_catalog.core.errors import DecodeError


logger = logging.getLogger(__name__)

SCHEMA_VERSION = "v1"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    shape: str
    required: bool = False


@dataclass(frozen=True)
class RecordSchema:
    kind: str
    fields: Tuple[FieldSpec, ...]

    def field_names(self) -> frozenset:
        return frozenset(f.name for f in self.fields)


def _req(name: str, shape: str) -> FieldSpec:
    return FieldSpec(name, shape, required=True)


def _opt(name: str, shape: str) -> FieldSpec:
    return FieldSpec(name, shape, required=False)


# ============================================================================
# SCHEMA v1
# ============================================================================

TAG_LIST = RecordSchema("data_tag_list", (_req("tag", "str_list"),))

DATASET_LIST = RecordSchema("data", (_req("dataset", "records"),))

DATASET_ENTRY = RecordSchema(
    "dataset",
    (
        _req("did", "int"),
        _req("name", "str"),
        _req("version", "int"),
        _req("status", "str"),
        _opt("format", "str"),
        _opt("md5_checksum", "str"),
        _opt("file_id", "int"),
        _opt("upload_date", "str"),
        _opt("quality", "records"),
    ),
)

QUALITY = RecordSchema("quality", (_req("name", "str"), _opt("value", "any")))

DATASET_DESCRIPTION = RecordSchema(
    "data_set_description",
    (
        _req("id", "int"),
        _req("name", "str"),
        _req("version", "int"),
        _req("format", "str"),
        _req("url", "str"),
        _opt("description", "str"),
        _opt("description_version", "int"),
        _opt("creator", "str_list"),
        _opt("contributor", "str_list"),
        _opt("collection_date", "str"),
        _opt("upload_date", "str"),
        _opt("update_comment", "str"),
        _opt("language", "str"),
        _opt("licence", "str"),
        _opt("parquet_url", "str"),
        _opt("minio_url", "str"),
        _opt("file_id", "int"),
        _opt("default_target_attribute", "str"),
        _opt("row_id_attribute", "str"),
        _opt("ignore_attribute", "str_list"),
        _opt("version_label", "str"),
        _opt("citation", "str"),
        _opt("original_data_url", "str"),
        _opt("paper_url", "str"),
        _opt("tag", "str_list"),
        _opt("visibility", "str"),
        _opt("status", "str"),
        _opt("processing_date", "str"),
        _opt("md5_checksum", "str"),
    ),
)

FEATURE_LIST = RecordSchema("data_features", (_req("feature", "records"),))

FEATURE = RecordSchema(
    "feature",
    (
        _req("index", "int"),
        _req("name", "str"),
        _req("data_type", "str"),
        _opt("nominal_value", "str_list"),
        _opt("is_target", "bool"),
        _opt("is_ignore", "bool"),
        _opt("is_row_identifier", "bool"),
        _opt("number_of_missing_values", "int"),
        _opt("ontology", "str_list"),
    ),
)

ERROR = RecordSchema(
    "error",
    (_req("code", "int"), _opt("message", "str"), _opt("additional_information", "str")),
)

SCHEMAS: Dict[str, Dict[str, RecordSchema]] = {
    "v1": {
        s.kind: s
        for s in (
            TAG_LIST,
            DATASET_LIST,
            DATASET_ENTRY,
            QUALITY,
            DATASET_DESCRIPTION,
            FEATURE_LIST,
            FEATURE,
            ERROR,
        )
    }
}


def get_schema(kind: str, version: str = SCHEMA_VERSION) -> RecordSchema:
    """Return the schema of ``kind`` for a response ``version``."""
    try:
        return SCHEMAS[version][kind]
    except KeyError as e:
        raise KeyError(f"No schema '{kind}' for version '{version}'") from e


# ============================================================================
# DECODING
# ============================================================================


def _shape_value(path: str, shape: str, value: Any) -> Any:
    if shape == "any":
        return value
    if shape == "str":
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise DecodeError(path, f"expected a string, got {type(value).__name__}")
        return str(value)
    if shape == "int":
        if isinstance(value, bool):
            raise DecodeError(path, "expected an integer, got bool")
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise DecodeError(path, f"expected an integer, got {value!r}")
    if shape == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise DecodeError(path, f"expected a boolean, got {value!r}")
    if shape == "str_list":
        items = value if isinstance(value, list) else [value]
        return [_shape_value(f"{path}[{i}]", "str", v) for i, v in enumerate(items)]
    if shape == "records":
        items = value if isinstance(value, list) else [value]
        for i, v in enumerate(items):
            if not isinstance(v, dict):
                raise DecodeError(f"{path}[{i}]", f"expected an object, got {type(v).__name__}")
        return items
    raise ValueError(f"Unknown field shape: {shape}")


def decode_record(
    schema: RecordSchema, payload: Any, path: str, strict: bool = True
) -> Dict[str, Any]:
    """Check ``payload`` against ``schema`` and return the shaped fields.

    Absent optional fields are omitted from the result.

    Raises:
        DecodeError: Naming the offending field path.
    """
    if not isinstance(payload, Mapping):
        raise DecodeError(path, f"expected an object, got {type(payload).__name__}")
    unknown = sorted(set(payload) - schema.field_names())
    if unknown:
        if strict:
            raise DecodeError(f"{path}.{unknown[0]}", f"unexpected field in {schema.kind}")
        logger.debug("Ignoring unknown %s fields at %s: %s", schema.kind, path, unknown)
    out: Dict[str, Any] = {}
    for spec in schema.fields:
        field_path = f"{path}.{spec.name}"
        if spec.name not in payload or payload[spec.name] is None:
            if spec.required:
                raise DecodeError(field_path, "required field is missing")
            continue
        out[spec.name] = _shape_value(field_path, spec.shape, payload[spec.name])
    return out


def unwrap(payload: Any, key: str) -> Any:
    """Return ``payload[key]`` from a response envelope, or raise ``DecodeError``."""
    if not isinstance(payload, Mapping):
        raise DecodeError("$", f"expected an object, got {type(payload).__name__}")
    if key not in payload:
        raise DecodeError(f"$.{key}", "required field is missing")
    return payload[key]


def decode_records(
    schema: RecordSchema, items: List[Any], path: str, strict: bool = True
) -> List[Dict[str, Any]]:
    return [decode_record(schema, item, f"{path}[{i}]", strict) for i, item in enumerate(items)]


__all__ = [
    "SCHEMA_VERSION",
    "FieldSpec",
    "RecordSchema",
    "SCHEMAS",
    "get_schema",
    "decode_record",
    "decode_records",
    "unwrap",
]
