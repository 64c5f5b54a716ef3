"""Tests for CatalogClient against a scripted transport."""

from dataclasses import replace

import pytest

from openml_catalog.catalog.client import CatalogClient
from openml_catalog.core.enums import AttributeKind
from openml_catalog.core.errors import DecodeError, InvalidFilter, NetworkError, NotFound
from openml_catalog.query.filters import compile_filter

from conftest import API_URL, DATASET_LIST, DOWNLOAD_URL, IRIS_ARFF, json_bytes, service_error


class TestListTags:
    def test_list_tags(self, catalog):
        assert catalog.client.list_tags() == ["OpenML100", "study_14", "uci"]
        assert catalog.transport.calls == [f"{API_URL}/data/tag/list"]

    def test_single_tag_is_not_collapsed(self, catalog):
        catalog.transport.responses[f"{API_URL}/data/tag/list"] = json_bytes(
            {"data_tag_list": {"tag": "OpenML100"}}
        )
        assert catalog.client.list_tags() == ["OpenML100"]

    def test_missing_envelope_names_field(self, catalog):
        catalog.transport.responses[f"{API_URL}/data/tag/list"] = json_bytes({"tags": []})
        with pytest.raises(DecodeError) as exc:
            catalog.client.list_tags()
        assert exc.value.field == "$.data_tag_list"


class TestListDatasets:
    def test_summaries(self, catalog):
        summaries = catalog.client.list_datasets()
        assert [s.dataset_id for s in summaries] == [61, 62]
        iris = summaries[0]
        assert iris.name == "iris"
        assert iris.version == 1
        assert iris.status == "active"
        assert iris.file_id == 61
        assert iris.qualities["number_instances"] == 150
        assert isinstance(iris.qualities["number_instances"], int)
        assert iris.qualities["majority_class_size"] == 50
        assert iris.qualities["mean_kurtosis"] == -0.75

    def test_single_quality_object_is_accepted(self, catalog):
        zoo = catalog.client.list_datasets()[1]
        assert zoo.qualities == {"number_instances": 101}
        assert zoo.md5_checksum is None

    def test_tag_and_filter_compose_into_one_path(self, catalog):
        path = f"{API_URL}/data/list/tag/OpenML100/number_instances/100..1000/number_features/1..10"
        catalog.transport.responses[path] = json_bytes(DATASET_LIST)
        result = catalog.client.list_datasets(
            tag="OpenML100",
            filter=compile_filter({"number_instances": [100, 1000], "number_features": [1, 10]}),
        )
        assert len(result) == 2
        assert catalog.transport.calls == [path]

    def test_mapping_filter_is_compiled(self, catalog):
        assert catalog.client.listing_path(filter={"status": "active"}) == (
            "/data/list/status/active"
        )

    def test_no_results_is_empty_list(self, catalog):
        url = f"{API_URL}/data/list/number_instances/1..2"
        catalog.transport.responses[url] = service_error(372, url=url)
        assert catalog.client.list_datasets(filter="number_instances/1..2") == []

    def test_other_service_errors_propagate(self, catalog):
        url = f"{API_URL}/data/list"
        catalog.transport.responses[url] = service_error(370, url=url)
        with pytest.raises(NetworkError) as exc:
            catalog.client.list_datasets()
        assert exc.value.status_code == 412

    def test_invalid_filter_fails_before_any_request(self, catalog):
        with pytest.raises(InvalidFilter):
            catalog.client.list_datasets(filter="number_instances/10..1")
        assert catalog.transport.calls == []

    def test_tag_with_slash_rejected(self, catalog):
        with pytest.raises(InvalidFilter):
            catalog.client.list_datasets(tag="a/b")

    def test_unknown_field_names_its_path(self, catalog):
        listing = {"data": {"dataset": [dict(DATASET_LIST["data"]["dataset"][1], surprise="x")]}}
        catalog.transport.responses[f"{API_URL}/data/list"] = json_bytes(listing)
        with pytest.raises(DecodeError) as exc:
            catalog.client.list_datasets()
        assert exc.value.field == "$.data.dataset[0].surprise"

    def test_unknown_field_dropped_when_lenient(self, catalog):
        listing = {"data": {"dataset": [dict(DATASET_LIST["data"]["dataset"][1], surprise="x")]}}
        catalog.transport.responses[f"{API_URL}/data/list"] = json_bytes(listing)
        client = CatalogClient(catalog.transport, replace(catalog.settings, strict_decoding=False))
        assert [s.name for s in client.list_datasets()] == ["zoo"]

    def test_missing_required_field(self, catalog):
        entry = dict(DATASET_LIST["data"]["dataset"][1])
        del entry["did"]
        catalog.transport.responses[f"{API_URL}/data/list"] = json_bytes(
            {"data": {"dataset": [entry]}}
        )
        with pytest.raises(DecodeError) as exc:
            catalog.client.list_datasets()
        assert exc.value.field == "$.data.dataset[0].did"

    def test_wrong_shape(self, catalog):
        entry = dict(DATASET_LIST["data"]["dataset"][1], version="one")
        catalog.transport.responses[f"{API_URL}/data/list"] = json_bytes(
            {"data": {"dataset": [entry]}}
        )
        with pytest.raises(DecodeError, match="version"):
            catalog.client.list_datasets()

    def test_invalid_json(self, catalog):
        catalog.transport.responses[f"{API_URL}/data/list"] = b"<html>oops</html>"
        with pytest.raises(DecodeError, match="not valid JSON"):
            catalog.client.list_datasets()


class TestDescribeDataset:
    def test_description_and_attributes(self, catalog):
        d = catalog.client.describe_dataset(61)
        assert d.dataset_id == 61
        assert d.name == "iris"
        assert d.url == DOWNLOAD_URL
        assert d.file_format == "ARFF"
        assert d.description.startswith("The famous Iris database")
        assert d.citation.creator == ("R.A. Fisher",)
        assert d.citation.licence == "Public"
        assert d.tags == ("OpenML100", "uci")
        assert [a.name for a in d.attributes] == ["sepallength", "petalcount", "class"]
        assert d.attributes[2].kind == AttributeKind.NOMINAL
        assert d.attributes[2].levels == ("Iris-setosa", "Iris-versicolor")
        assert d.target_attributes == ("class",)

    def test_unknown_dataset_code(self, catalog):
        url = f"{API_URL}/data/5"
        catalog.transport.responses[url] = service_error(111, url=url)
        with pytest.raises(NotFound):
            catalog.client.describe_dataset(5)

    def test_http_404(self, catalog):
        with pytest.raises(NotFound):
            catalog.client.describe_dataset(999)

    def test_negative_id(self, catalog):
        with pytest.raises(NotFound):
            catalog.client.describe_dataset(-1)
        assert catalog.transport.calls == []

    def test_features_not_available_yet(self, catalog):
        url = f"{API_URL}/data/features/61"
        catalog.transport.responses[url] = service_error(273, url=url)
        assert catalog.client.describe_dataset(61).attributes == ()

    def test_unknown_data_type(self, catalog):
        catalog.transport.responses[f"{API_URL}/data/features/61"] = json_bytes(
            {"data_features": {"feature": {"index": "0", "name": "x", "data_type": "blob"}}}
        )
        with pytest.raises(DecodeError) as exc:
            catalog.client.describe_dataset(61)
        assert exc.value.field == "$.data_features.feature[0].data_type"


class TestApiKey:
    def test_api_key_appended(self, catalog):
        client = CatalogClient(catalog.transport, replace(catalog.settings, api_key="secret"))
        catalog.transport.responses[f"{API_URL}/data/tag/list?api_key=secret"] = (
            catalog.transport.responses[f"{API_URL}/data/tag/list"]
        )
        client.list_tags()
        assert catalog.transport.calls == [f"{API_URL}/data/tag/list?api_key=secret"]

    def test_download_uses_description_url(self, catalog):
        d = catalog.client.describe_dataset(61)
        assert catalog.client.download_artifact(d) == IRIS_ARFF
        assert catalog.transport.calls[-1] == DOWNLOAD_URL
