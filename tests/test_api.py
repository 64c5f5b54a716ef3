"""Tests for the top-level list/describe/load functions."""

import pandas as pd
import polars as pl
import pytest

from openml_catalog import describe_dataset, list_datasets, list_tags, load
from openml_catalog.cache.store import ArtifactCache
from openml_catalog.catalog.models import DatasetSummary
from openml_catalog.core.enums import ScientificType
from openml_catalog.core.errors import FetchError, FormatError, NotFound
from openml_catalog.core.table import Table

from conftest import API_URL, DESCRIPTION, DOWNLOAD_URL, json_bytes


@pytest.fixture
def cache(settings):
    return ArtifactCache(settings.cache_root)


def test_list_tags(catalog):
    assert list_tags(client=catalog.client) == ["OpenML100", "study_14", "uci"]


class TestListDatasets:
    def test_records(self, catalog):
        result = list_datasets(tag="OpenML100", client=catalog.client)
        assert all(isinstance(s, DatasetSummary) for s in result)
        assert catalog.transport.calls == [f"{API_URL}/data/list/tag/OpenML100"]

    def test_pandas(self, catalog):
        df = list_datasets(output_format="pandas", client=catalog.client)
        assert isinstance(df, pd.DataFrame)
        assert list(df["dataset_id"]) == [61, 62]
        assert df.loc[0, "number_instances"] == 150
        assert pd.isna(df.loc[1, "number_features"])

    def test_polars(self, catalog):
        df = list_datasets(output_format="polars", client=catalog.client)
        assert isinstance(df, pl.DataFrame)
        assert df["name"].to_list() == ["iris", "zoo"]

    def test_unknown_output_format(self, catalog):
        with pytest.raises(ValueError):
            list_datasets(output_format="csv", client=catalog.client)


def test_describe_dataset_returns_text(catalog):
    text = describe_dataset(61, client=catalog.client)
    assert text == DESCRIPTION["data_set_description"]["description"]


class TestLoad:
    def test_load_declared_types(self, catalog, cache):
        table = load(61, client=catalog.client, cache=cache)
        assert isinstance(table, Table)
        assert table.schema() == {
            "sepallength": ScientificType.CONTINUOUS,
            "petalcount": ScientificType.CONTINUOUS,
            "class": ScientificType.MULTICLASS,
        }
        assert table["petalcount"].to_list() == [3.0, None, 3.0]

    def test_load_auto(self, catalog, cache):
        table = load(61, parser="auto", client=catalog.client, cache=cache)
        assert table["petalcount"].scitype == ScientificType.ORDEREDFACTOR

    def test_second_load_makes_no_requests(self, catalog, cache):
        load(61, client=catalog.client, cache=cache)
        n_calls = len(catalog.transport.calls)
        assert DOWNLOAD_URL in catalog.transport.calls
        load(61, client=catalog.client, cache=cache)
        assert len(catalog.transport.calls) == n_calls

    def test_container(self, catalog, cache):
        df = load(61, container="pandas", client=catalog.client, cache=cache)
        assert isinstance(df, pd.DataFrame)
        assert df.shape == (3, 3)

    def test_overrides(self, catalog, cache):
        table = load(61, overrides={"petalcount": "count"}, client=catalog.client, cache=cache)
        assert table["petalcount"].scitype == ScientificType.COUNT

    def test_checksum_mismatch(self, catalog, cache):
        description = {
            "data_set_description": dict(
                DESCRIPTION["data_set_description"], md5_checksum="0" * 32
            )
        }
        catalog.transport.responses[f"{API_URL}/data/61"] = json_bytes(description)
        with pytest.raises(FetchError, match="Checksum mismatch"):
            load(61, client=catalog.client, cache=cache)
        assert not cache.contains(61)

    def test_unsupported_format(self, catalog, cache):
        description = {
            "data_set_description": dict(DESCRIPTION["data_set_description"], format="Parquet")
        }
        catalog.transport.responses[f"{API_URL}/data/61"] = json_bytes(description)
        with pytest.raises(FetchError) as exc:
            load(61, client=catalog.client, cache=cache)
        assert isinstance(exc.value.__cause__, FormatError)
        assert DOWNLOAD_URL not in catalog.transport.calls

    def test_unknown_dataset(self, catalog, cache):
        with pytest.raises(FetchError) as exc:
            load(404, client=catalog.client, cache=cache)
        assert isinstance(exc.value.__cause__, NotFound)

    def test_malformed_artifact(self, catalog, cache):
        catalog.transport.responses[DOWNLOAD_URL] = b"@relation broken\n@data\n1\n"
        description = {
            "data_set_description": dict(DESCRIPTION["data_set_description"], md5_checksum=None)
        }
        catalog.transport.responses[f"{API_URL}/data/61"] = json_bytes(description)
        with pytest.raises(FormatError):
            load(61, client=catalog.client, cache=cache)

    def test_invalid_parser(self, catalog, cache):
        with pytest.raises(ValueError, match="parser"):
            load(61, parser="csv", client=catalog.client, cache=cache)
