"""Top-level functions: list_tags, list_datasets, describe_dataset, load.

Each function accepts an optional ``client`` (and ``load`` an optional
``cache``). Without them a client is built from ``load_settings()`` around an
``HttpTransport`` that is closed again when the call returns.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import asdict
from typing import Any, Iterator, List, Mapping, Optional, Union

import pandas as pd
import polars as pl

from openml_catalog.cache.store import ArtifactCache, RawArtifact, verify_md5
from openml_catalog.catalog.client import CatalogClient, FilterArg
from openml_catalog.catalog.models import DatasetSummary
from openml_catalog.coercion.engine import coerce
from openml_catalog.core.config import load_settings
from openml_catalog.core.enums import CoercionMode, ScientificType
from openml_catalog.core.errors import FormatError
from openml_catalog.core.table import Container, build_table
from openml_catalog.ingestion.parsers import parse_arff
from openml_catalog.sources.transport import HttpTransport


logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("arff", "sparse_arff")
PARSER_MODES = {"arff": CoercionMode.STRICT, "auto": CoercionMode.AUTO}


@contextlib.contextmanager
def _client_scope(client: Optional[CatalogClient]) -> Iterator[CatalogClient]:
    if client is not None:
        yield client
        return
    settings = load_settings()
    transport = HttpTransport(
        timeout_sec=settings.timeout_sec, show_progress=settings.show_progress
    )
    try:
        yield CatalogClient(transport, settings)
    finally:
        transport.close()


def list_tags(*, client: Optional[CatalogClient] = None) -> List[str]:
    """List all available tags."""
    with _client_scope(client) as c:
        return c.list_tags()


def summaries_to_records(summaries: List[DatasetSummary]) -> List[dict]:
    """Flatten summaries into dicts: identifier fields first, then qualities."""
    records = []
    for s in summaries:
        row = asdict(s)
        qualities = row.pop("qualities")
        row.update(qualities)
        records.append(row)
    return records


def list_datasets(
    tag: Optional[str] = None,
    filter: FilterArg = None,
    output_format: str = "records",
    *,
    client: Optional[CatalogClient] = None,
) -> Union[List[DatasetSummary], pd.DataFrame, pl.DataFrame]:
    """List datasets, optionally restricted to a tag and/or a filter.

    Args:
        tag: Only datasets carrying this tag (see ``list_tags``).
        filter: Filter path such as ``"number_instances/100..1000"`` or a
            mapping accepted by ``compile_filter``.
        output_format: "records" (list of ``DatasetSummary``), "pandas" or "polars".

    Examples:
        >>> ds = list_datasets(
        ...     tag="OpenML100",
        ...     filter={"number_instances": [100, 1000], "number_features": [1, 10]},
        ...     output_format="pandas",
        ... )  # doctest: +SKIP
    """
    if output_format not in ("records", "pandas", "polars"):
        raise ValueError(f"Unknown output_format: {output_format!r}")
    with _client_scope(client) as c:
        summaries = c.list_datasets(tag=tag, filter=filter)
    if output_format == "records":
        return summaries
    records = summaries_to_records(summaries)
    if output_format == "pandas":
        return pd.DataFrame.from_records(records)
    return pl.DataFrame(records) if records else pl.DataFrame()


def describe_dataset(dataset_id: int, *, client: Optional[CatalogClient] = None) -> str:
    """Return the free-text description of a dataset."""
    with _client_scope(client) as c:
        return c.describe_dataset(dataset_id).description


def fetch_artifact(
    dataset_id: int,
    client: CatalogClient,
    cache: ArtifactCache,
    timeout: Optional[float] = None,
) -> RawArtifact:
    """Return the raw artifact of a dataset, downloading it only on a cache miss.

    On a miss the dataset is described first (for its download URL, format and
    checksum); the downloaded bytes are checked against the catalog's md5
    before they are persisted.
    """

    def fetcher() -> bytes:
        description = client.describe_dataset(dataset_id)
        if description.file_format.lower() not in SUPPORTED_FORMATS:
            raise FormatError(
                0, f"dataset {dataset_id} is stored as {description.file_format}, not ARFF"
            )
        data = client.download_artifact(description)
        if description.md5_checksum:
            verify_md5(dataset_id, data, description.md5_checksum)
        return data

    return cache.get_or_fetch(dataset_id, fetcher, timeout=timeout)


def load(
    dataset_id: int,
    parser: str = "arff",
    *,
    container: Container = None,
    overrides: Optional[Mapping[str, Union[ScientificType, str]]] = None,
    strict: bool = True,
    on_bad_row: str = "raise",
    client: Optional[CatalogClient] = None,
    cache: Optional[ArtifactCache] = None,
) -> Any:
    """Load a dataset as a typed table.

    Args:
        dataset_id: Catalog identifier.
        parser: "arff" keeps the declared attribute types; "auto" coerces the
            parsed columns to automatically detected scientific types.
        container: None for a ``Table``, "pandas", "polars" or a callable.
        overrides: Column name -> scientific type forced on the result.
        strict: Reject nominal values outside the declared levels.
        on_bad_row: "raise" or "skip" malformed data rows.
        client: Catalog client; built from settings when omitted.
        cache: Artifact cache; built at ``settings.cache_root`` when omitted.

    Examples:
        >>> table = load(61)  # doctest: +SKIP
        >>> df = table.to_pandas()  # doctest: +SKIP
    """
    if parser not in PARSER_MODES:
        raise ValueError(f"parser must be one of {sorted(PARSER_MODES)}, got {parser!r}")
    with _client_scope(client) as c:
        if cache is None:
            cache = ArtifactCache(c.settings.cache_root)
        artifact = fetch_artifact(dataset_id, c, cache)
    parsed = parse_arff(artifact.data, strict=strict, on_bad_row=on_bad_row)
    logger.info(
        "Parsed dataset %s: %d rows, %d attributes",
        dataset_id,
        parsed.n_rows,
        parsed.n_columns,
    )
    table = coerce(parsed, PARSER_MODES[parser], overrides=overrides)
    return build_table(table.columns(), container)


__all__ = [
    "list_tags",
    "list_datasets",
    "describe_dataset",
    "fetch_artifact",
    "load",
    "summaries_to_records",
]
