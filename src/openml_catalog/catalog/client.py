"""Catalog client: tags, dataset listings and dataset descriptions.

Requests go through a ``Transport`` (``fetch(url) -> bytes``). Responses are
decoded with the versioned schemas of ``openml_catalog.catalog.schema``.
Nothing is retried here: transport failures propagate as ``NetworkError``.

Remote error conventions handled:
- HTTP 412 with error code 372 on a listing: no results, an empty list
- HTTP 412 with error code 111, or HTTP 404, on a dataset: ``NotFound``
- HTTP 412 with error codes 271-274 on the features endpoint: attributes
  are not available (yet); the description is returned without them
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import quote, urlencode

from openml_catalog.core.config import Settings
from openml_catalog.core.enums import AttributeKind
from openml_catalog.core.errors import DecodeError, InvalidFilter, NetworkError, NotFound
from openml_catalog.core.utils import snake_case
from openml_catalog.query.filters import compile_filter, parse_filter
from . import schema as sch
from .models import Citation, DatasetDescription, DatasetSummary, DeclaredAttribute, QualityValue

logger = logging.getLogger(__name__)

NO_RESULTS_CODE = 372
UNKNOWN_DATASET_CODE = 111
FEATURES_UNAVAILABLE_CODES = frozenset({271, 272, 273, 274})

# Headline qualities get the short names used by listing filters
QUALITY_ALIASES = {
    "NumberOfInstances": "number_instances",
    "NumberOfFeatures": "number_features",
    "NumberOfClasses": "number_classes",
    "NumberOfMissingValues": "number_missing_values",
}

FilterArg = Union[None, str, Mapping[str, Any]]


def _quality_value(raw: Any) -> QualityValue:
    if isinstance(raw, bool):
        return str(raw).lower()
    if isinstance(raw, (int, float)):
        num = float(raw)
    else:
        text = str(raw).strip()
        try:
            num = float(text)
        except ValueError:
            return text
    if num != num:
        return float("nan")
    return int(num) if num.is_integer() else num


def _attribute_kind(data_type: str, path: str) -> AttributeKind:
    try:
        return AttributeKind(data_type.strip().lower())
    except ValueError as e:
        raise DecodeError(path, f"unknown attribute data_type {data_type!r}") from e


class CatalogClient:
    """Client for the catalog JSON API.

    Args:
        transport: Object providing ``fetch(url) -> bytes``.
        settings: Resolved settings (API URL, API key, decoding strictness).
    """

    def __init__(self, transport: Any, settings: Optional[Settings] = None) -> None:
        self.transport = transport
        self.settings = settings or Settings()

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------
    def url_for(self, path: str) -> str:
        """Build the absolute URL of an API ``path``, appending the API key if set."""
        url = f"{self.settings.api_url}{path}"
        return self._with_api_key(url)

    def _with_api_key(self, url: str) -> str:
        if not self.settings.api_key:
            return url
        sep = "&" if "?" in url else "?"
        return f"{url}{sep}{urlencode({'api_key': self.settings.api_key})}"

    def _service_error_code(self, err: NetworkError) -> Optional[int]:
        """Return the catalog error code carried by an HTTP error body, if any."""
        if not err.body:
            return None
        try:
            payload = json.loads(err.body.decode("utf-8"))
            fields = sch.decode_record(
                sch.get_schema("error"), sch.unwrap(payload, "error"), "$.error", strict=False
            )
        except (ValueError, DecodeError):
            return None
        return fields["code"]

    def _get_json(self, path: str) -> Any:
        body = self.transport.fetch(self.url_for(path))
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError("$", f"response for {path} is not valid JSON: {e}") from e

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def list_tags(self) -> List[str]:
        """List all dataset tags known to the catalog."""
        payload = self._get_json("/data/tag/list")
        fields = sch.decode_record(
            sch.get_schema("data_tag_list"),
            sch.unwrap(payload, "data_tag_list"),
            "$.data_tag_list",
            self.settings.strict_decoding,
        )
        return list(fields["tag"])

    def listing_path(self, tag: Optional[str] = None, filter: FilterArg = None) -> str:
        """Compose the listing request path from an optional tag and filter.

        ``filter`` may be a compiled filter string (validated) or a mapping
        (compiled with ``compile_filter``).
        """
        path = "/data/list"
        if tag is not None:
            tag = str(tag).strip()
            if not tag or "/" in tag:
                raise InvalidFilter(f"Invalid tag: {tag!r}")
            path += f"/tag/{quote(tag, safe='')}"
        if filter:
            if isinstance(filter, Mapping):
                compiled = compile_filter(filter)
            else:
                parse_filter(filter)
                compiled = filter.strip().strip("/")
            if compiled:
                path += f"/{compiled}"
        return path

    def list_datasets(
        self, tag: Optional[str] = None, filter: FilterArg = None
    ) -> List[DatasetSummary]:
        """List datasets, optionally restricted by a tag and/or a filter.

        Both constraints are sent in one path and ANDed by the service.

        Raises:
            InvalidFilter: If the tag or filter is malformed.
            NetworkError: On transport failures.
            DecodeError: If the response does not match the listing schema.
        """
        path = self.listing_path(tag, filter)
        try:
            payload = self._get_json(path)
        except NetworkError as e:
            if e.status_code == 412 and self._service_error_code(e) == NO_RESULTS_CODE:
                logger.info("No datasets matched %s", path)
                return []
            raise
        strict = self.settings.strict_decoding
        listing = sch.decode_record(
            sch.get_schema("data"), sch.unwrap(payload, "data"), "$.data", strict
        )
        entries = sch.decode_records(
            sch.get_schema("dataset"), listing["dataset"], "$.data.dataset", strict
        )
        out: List[DatasetSummary] = []
        for i, entry in enumerate(entries):
            base = f"$.data.dataset[{i}]"
            qualities: Dict[str, QualityValue] = {}
            for q in sch.decode_records(
                sch.get_schema("quality"), entry.get("quality", []), f"{base}.quality", strict
            ):
                key = QUALITY_ALIASES.get(q["name"], snake_case(q["name"]))
                qualities[key] = _quality_value(q.get("value", ""))
            if entry["did"] < 0:
                raise DecodeError(f"{base}.did", "identifier must be non-negative")
            out.append(
                DatasetSummary(
                    dataset_id=entry["did"],
                    name=entry["name"],
                    version=entry["version"],
                    status=entry["status"],
                    format=entry.get("format", ""),
                    md5_checksum=entry.get("md5_checksum"),
                    file_id=entry.get("file_id"),
                    qualities=qualities,
                )
            )
        logger.debug("Listed %d datasets for %s", len(out), path)
        return out

    def describe_dataset(self, dataset_id: int) -> DatasetDescription:
        """Fetch the description and declared attributes of a dataset.

        Raises:
            NotFound: If the catalog has no dataset with this identifier.
            NetworkError: On transport failures.
            DecodeError: If a response does not match its schema.
        """
        dataset_id = int(dataset_id)
        if dataset_id < 0:
            raise NotFound(f"Dataset {dataset_id} does not exist")
        strict = self.settings.strict_decoding
        try:
            payload = self._get_json(f"/data/{dataset_id}")
        except NetworkError as e:
            if e.status_code == 404 or (
                e.status_code == 412 and self._service_error_code(e) == UNKNOWN_DATASET_CODE
            ):
                raise NotFound(f"Dataset {dataset_id} does not exist") from e
            raise
        d = sch.decode_record(
            sch.get_schema("data_set_description"),
            sch.unwrap(payload, "data_set_description"),
            "$.data_set_description",
            strict,
        )
        citation = Citation(
            creator=tuple(d.get("creator", ())),
            contributor=tuple(d.get("contributor", ())),
            collection_date=d.get("collection_date"),
            citation=d.get("citation"),
            original_data_url=d.get("original_data_url"),
            paper_url=d.get("paper_url"),
            licence=d.get("licence"),
        )
        return DatasetDescription(
            dataset_id=d["id"],
            name=d["name"],
            version=d["version"],
            description=d.get("description", ""),
            citation=citation,
            file_format=d["format"],
            url=d["url"],
            md5_checksum=d.get("md5_checksum"),
            status=d.get("status"),
            default_target_attribute=d.get("default_target_attribute"),
            tags=tuple(d.get("tag", ())),
            attributes=self._declared_attributes(dataset_id),
        )

    def _declared_attributes(self, dataset_id: int) -> tuple:
        strict = self.settings.strict_decoding
        try:
            payload = self._get_json(f"/data/features/{dataset_id}")
        except NetworkError as e:
            if e.status_code == 412 and self._service_error_code(e) in FEATURES_UNAVAILABLE_CODES:
                logger.warning("Attributes of dataset %s are not available yet", dataset_id)
                return ()
            raise
        features = sch.decode_record(
            sch.get_schema("data_features"),
            sch.unwrap(payload, "data_features"),
            "$.data_features",
            strict,
        )
        out = []
        for i, f in enumerate(
            sch.decode_records(
                sch.get_schema("feature"), features["feature"], "$.data_features.feature", strict
            )
        ):
            out.append(
                DeclaredAttribute(
                    index=f["index"],
                    name=f["name"],
                    kind=_attribute_kind(f["data_type"], f"$.data_features.feature[{i}].data_type"),
                    levels=tuple(f.get("nominal_value", ())),
                    is_target=f.get("is_target", False),
                    is_ignore=f.get("is_ignore", False),
                    is_row_identifier=f.get("is_row_identifier", False),
                    number_of_missing_values=f.get("number_of_missing_values"),
                )
            )
        return tuple(sorted(out, key=lambda a: a.index))

    def download_artifact(self, description: DatasetDescription) -> bytes:
        """Download the raw artifact of a described dataset (used as a cache fetcher)."""
        logger.info(
            "Downloading dataset %s (%s) from %s",
            description.dataset_id,
            description.name,
            description.url,
        )
        return self.transport.fetch(self._with_api_key(description.url))


__all__ = ["CatalogClient", "QUALITY_ALIASES"]
