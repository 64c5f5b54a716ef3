"""Shared pytest fixtures: a scripted transport, catalog responses and sample ARFF."""

import hashlib
import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Union

import pytest

from openml_catalog.catalog.client import CatalogClient
from openml_catalog.core.config import Settings
from openml_catalog.core.errors import NetworkError

API_URL = "https://catalog.test/api/v1/json"
DOWNLOAD_URL = "https://catalog.test/data/v1/download/61/iris.arff"

IRIS_ARFF = b"""% Iris sample
@relation iris

@attribute sepallength numeric
@attribute petalcount integer
@attribute class {Iris-setosa,Iris-versicolor}

@data
5.1,3,Iris-setosa
4.9,?,Iris-versicolor
6.0,3,Iris-setosa
"""

TAG_LIST = {"data_tag_list": {"tag": ["OpenML100", "study_14", "uci"]}}

DATASET_LIST = {
    "data": {
        "dataset": [
            {
                "did": "61",
                "name": "iris",
                "version": "1",
                "status": "active",
                "format": "ARFF",
                "md5_checksum": "ad484452702105cbf3d30f8deaba39a9",
                "file_id": "61",
                "quality": [
                    {"name": "NumberOfInstances", "value": "150.0"},
                    {"name": "NumberOfFeatures", "value": "5.0"},
                    {"name": "NumberOfClasses", "value": "3.0"},
                    {"name": "MajorityClassSize", "value": "50.0"},
                    {"name": "MeanKurtosis", "value": "-0.75"},
                ],
            },
            {
                "did": "62",
                "name": "zoo",
                "version": "1",
                "status": "active",
                "format": "ARFF",
                "quality": {"name": "NumberOfInstances", "value": "101.0"},
            },
        ]
    }
}

DESCRIPTION = {
    "data_set_description": {
        "id": "61",
        "name": "iris",
        "version": "1",
        "description": "The famous Iris database, first used by Sir R.A. Fisher.",
        "format": "ARFF",
        "creator": "R.A. Fisher",
        "collection_date": "1936",
        "upload_date": "2014-04-06T23:23:39",
        "licence": "Public",
        "url": DOWNLOAD_URL,
        "file_id": "61",
        "default_target_attribute": "class",
        "tag": ["OpenML100", "uci"],
        "visibility": "public",
        "status": "active",
        "md5_checksum": hashlib.md5(IRIS_ARFF).hexdigest(),
    }
}

FEATURES = {
    "data_features": {
        "feature": [
            {
                "index": "0",
                "name": "sepallength",
                "data_type": "numeric",
                "is_target": "false",
                "is_ignore": "false",
                "is_row_identifier": "false",
                "number_of_missing_values": "0",
            },
            {
                "index": "2",
                "name": "class",
                "data_type": "nominal",
                "nominal_value": ["Iris-setosa", "Iris-versicolor"],
                "is_target": "true",
                "is_ignore": "false",
                "is_row_identifier": "false",
                "number_of_missing_values": "0",
            },
            {
                "index": "1",
                "name": "petalcount",
                "data_type": "numeric",
                "is_target": "false",
                "is_ignore": "false",
                "is_row_identifier": "false",
                "number_of_missing_values": "1",
            },
        ]
    }
}


def json_bytes(obj) -> bytes:
    return json.dumps(obj).encode("utf-8")


def service_error(code: int, status_code: int = 412, url: str = "") -> NetworkError:
    """Build the error the transport raises for a catalog error response."""
    body = json_bytes({"error": {"code": str(code), "message": "Service error"}})
    return NetworkError(
        f"HTTP {status_code} for {url}", url=url, status_code=status_code, body=body
    )


class FakeTransport:
    """Transport answering from a URL -> bytes (or exception) mapping.

    Unknown URLs fail like an HTTP 404 without a body.
    """

    def __init__(self, responses: Dict[str, Union[bytes, Exception]]):
        self.responses = dict(responses)
        self.calls: List[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def fetch(self, url: str) -> bytes:
        with self._lock:
            self.calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise NetworkError(f"HTTP 404 for {url}", url=url, status_code=404, body=b"")
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


@dataclass
class Catalog:
    """A client wired to a fake transport, plus the pieces tests inspect."""

    settings: Settings
    transport: FakeTransport
    client: CatalogClient


def default_responses() -> Dict[str, Union[bytes, Exception]]:
    return {
        f"{API_URL}/data/tag/list": json_bytes(TAG_LIST),
        f"{API_URL}/data/list": json_bytes(DATASET_LIST),
        f"{API_URL}/data/list/tag/OpenML100": json_bytes(DATASET_LIST),
        f"{API_URL}/data/61": json_bytes(DESCRIPTION),
        f"{API_URL}/data/features/61": json_bytes(FEATURES),
        DOWNLOAD_URL: IRIS_ARFF,
    }


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(api_url=API_URL, cache_root=tmp_path / "cache")


@pytest.fixture
def catalog(settings: Settings) -> Catalog:
    transport = FakeTransport(default_responses())
    return Catalog(settings=settings, transport=transport, client=CatalogClient(transport, settings))
