"""Tests for modelup.catalog — record parsing and the Civitai backend."""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from modelup.catalog import FileRecord, ModelRecord, VersionRecord, normalize_format
from modelup.catalog._types import parse_timestamp
from modelup.catalog.civitai import CivitaiCatalog, create_http_client
from modelup.config import Settings
from modelup.errors import CatalogError, NotFoundError, TransportError

# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

SAMPLE_VERSION = {
    "id": 101,
    "modelId": 7,
    "name": "v1",
    "createdAt": "2023-04-30T10:00:00.000Z",
    "publishedAt": "2023-05-01T12:00:00.000Z",
    "model": {"name": "Pretty Lora", "type": "LORA"},
    "files": [
        {
            "name": "pretty.safetensors",
            "sizeKB": 2048.5,
            "primary": True,
            "metadata": {"format": "SafeTensor", "fp": "fp16"},
            "hashes": {"SHA256": "ABCDEF0123", "AutoV2": "ABCDEF"},
            "downloadUrl": "https://civitai.com/api/download/models/101",
        },
        {
            "name": "pretty.pt",
            "primary": False,
            "metadata": {"format": "PickleTensor"},
            "hashes": {},
            "downloadUrl": "https://civitai.com/api/download/models/101?type=Pickle",
        },
    ],
}

SAMPLE_MODEL = {
    "id": 7,
    "name": "Pretty Lora",
    "modelVersions": [
        {"id": 103, "name": "v3", "publishedAt": "2023-05-03T12:00:00.000Z", "files": []},
        {"id": 102, "name": "v2", "publishedAt": "2023-05-02T12:00:00.000Z", "files": []},
        {"id": 101, "name": "v1", "publishedAt": "2023-05-01T12:00:00.000Z", "files": []},
    ],
}


def _catalog(handler, **kwargs) -> CivitaiCatalog:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return CivitaiCatalog(client, "https://civitai.test/api/v1/", backoff_base=0, **kwargs)


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------


class TestNormalizeFormat:
    def test_safetensor(self) -> None:
        assert normalize_format("SafeTensor") == "safetensor"

    def test_pickle(self) -> None:
        assert normalize_format("PickleTensor") == "pickle"

    def test_unknown_lowercased(self) -> None:
        assert normalize_format("Diffusers") == "diffusers"

    def test_empty(self) -> None:
        assert normalize_format(None) == ""


class TestParseTimestamp:
    def test_zulu(self) -> None:
        ts = parse_timestamp("2023-05-01T12:00:00.000Z")
        assert ts == datetime(2023, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_naive_becomes_utc(self) -> None:
        assert parse_timestamp("2023-05-01T12:00:00").tzinfo == timezone.utc

    def test_missing(self) -> None:
        with pytest.raises(CatalogError):
            parse_timestamp(None)

    def test_garbage(self) -> None:
        with pytest.raises(CatalogError):
            parse_timestamp("yesterday")


class TestVersionRecord:
    def test_from_dict(self) -> None:
        v = VersionRecord.from_dict(SAMPLE_VERSION)
        assert v.id == 101
        assert v.model_id == 7
        assert v.name == "v1"
        assert v.model_name == "Pretty Lora"
        assert v.published_at == datetime(2023, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert len(v.files) == 2

    def test_file_fields(self) -> None:
        f = VersionRecord.from_dict(SAMPLE_VERSION).files[0]
        assert isinstance(f, FileRecord)
        assert f.format == "safetensor"
        assert f.primary is True
        assert f.sha256 == "abcdef0123"
        assert f.size_kb == 2048.5

    def test_falls_back_to_created_at(self) -> None:
        data = dict(SAMPLE_VERSION)
        del data["publishedAt"]
        v = VersionRecord.from_dict(data)
        assert v.published_at == datetime(2023, 4, 30, 10, 0, tzinfo=timezone.utc)

    def test_missing_model_id(self) -> None:
        data = dict(SAMPLE_VERSION)
        del data["modelId"]
        with pytest.raises(CatalogError):
            VersionRecord.from_dict(data)

    def test_file_without_url(self) -> None:
        data = dict(SAMPLE_VERSION, files=[{"name": "x.safetensors"}])
        with pytest.raises(CatalogError):
            VersionRecord.from_dict(data)


class TestModelRecord:
    def test_versions_inherit_model_id(self) -> None:
        m = ModelRecord.from_dict(SAMPLE_MODEL)
        assert m.name == "Pretty Lora"
        assert [v.name for v in m.versions] == ["v3", "v2", "v1"]
        assert all(v.model_id == 7 for v in m.versions)

    def test_missing_id(self) -> None:
        with pytest.raises(CatalogError):
            ModelRecord.from_dict({"name": "x"})


# ---------------------------------------------------------------------------
# CivitaiCatalog
# ---------------------------------------------------------------------------


class TestCivitaiCatalog:
    def test_get_version_by_hash(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=SAMPLE_VERSION)

        v = _catalog(handler).get_version_by_hash("abc123")
        assert v.id == 101
        assert seen == ["/api/v1/model-versions/by-hash/abc123"]

    def test_get_model(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v1/models/7"
            return httpx.Response(200, json=SAMPLE_MODEL)

        m = _catalog(handler).get_model(7)
        assert m.id == 7
        assert len(m.versions) == 3

    def test_404_is_not_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": "No model with id"})

        with pytest.raises(NotFoundError):
            _catalog(handler).get_version_by_hash("unknown")

    def test_other_client_error_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="Unauthorized")

        with pytest.raises(TransportError) as exc_info:
            _catalog(handler).get_model(7)
        assert exc_info.value.status_code == 401

    def test_retries_on_503(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            if len(calls) < 3:
                return httpx.Response(503, text="busy")
            return httpx.Response(200, json=SAMPLE_MODEL)

        assert _catalog(handler).get_model(7).name == "Pretty Lora"
        assert len(calls) == 3

    def test_gives_up_after_max_retries(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(TransportError) as exc_info:
            _catalog(handler, max_retries=2).get_model(7)
        assert exc_info.value.status_code == 502
        assert len(calls) == 2

    def test_connection_error_retried_then_raised(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError):
            _catalog(handler).get_model(7)
        assert len(calls) == 3

    def test_invalid_json(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with pytest.raises(CatalogError):
            _catalog(handler).get_model(7)

    def test_non_object_payload(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[1, 2])

        with pytest.raises(CatalogError):
            _catalog(handler).get_version_by_hash("abc")


class TestCreateHttpClient:
    def test_bearer_token(self) -> None:
        with create_http_client(Settings(api_key="secret")) as client:
            assert client.headers["Authorization"] == "Bearer secret"

    def test_no_token(self) -> None:
        with create_http_client(Settings()) as client:
            assert "Authorization" not in client.headers
