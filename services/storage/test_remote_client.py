"""Unit tests for the remote storage client, using an in-process httpx transport."""

import json

import httpx
import pytest

from shared.errors import NetworkFailure, RemoteRejected, RemoteTimeout
from shared.models import ImageAsset
from services.storage.remote_client import RemoteStorageClient


BASE_URL = "https://kv.example.com/functions/v1/server"


def make_client(handler):
    return RemoteStorageClient(
        base_url=BASE_URL,
        api_key="anon-key",
        transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_save_data_posts_key_and_data():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True})

    client = make_client(handler)
    await client.save_data("papers", [{"id": "1"}])
    await client.aclose()

    assert seen["url"] == f"{BASE_URL}/save-data"
    assert seen["auth"] == "Bearer anon-key"
    assert seen["body"] == {"key": "papers", "data": [{"id": "1"}]}


@pytest.mark.asyncio
async def test_save_data_without_success_flag_is_rejected():
    client = make_client(lambda request: httpx.Response(200, json={}))

    with pytest.raises(RemoteRejected):
        await client.save_data("papers", [])


@pytest.mark.asyncio
async def test_get_data_returns_value():
    def handler(request):
        assert request.url.path.endswith("/get-data/budgetAssets")
        return httpx.Response(200, json={"data": [{"id": "a"}]})

    client = make_client(handler)

    assert await client.get_data("budgetAssets") == [{"id": "a"}]


@pytest.mark.asyncio
async def test_get_data_not_found_returns_none():
    client = make_client(lambda request: httpx.Response(200, json={"data": None}))

    assert await client.get_data("missing") is None


@pytest.mark.asyncio
async def test_html_response_is_rejected():
    client = make_client(lambda request: httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(RemoteRejected):
        await client.get_data("papers")


@pytest.mark.asyncio
async def test_non_json_response_is_rejected():
    client = make_client(lambda request: httpx.Response(200, text="ok"))

    with pytest.raises(RemoteRejected):
        await client.get_data("papers")


@pytest.mark.asyncio
async def test_non_2xx_is_rejected_with_status():
    client = make_client(lambda request: httpx.Response(500, json={"error": "Internal server error"}))

    with pytest.raises(RemoteRejected) as exc_info:
        await client.get_data("papers")

    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_timeout_maps_to_remote_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler)

    with pytest.raises(RemoteTimeout):
        await client.save_data("papers", [])


@pytest.mark.asyncio
async def test_connection_error_maps_to_network_failure():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    client = make_client(handler)

    with pytest.raises(NetworkFailure):
        await client.get_data("papers")


def corrupt_gzip_response(request):
    return httpx.Response(
        200,
        headers={"Content-Encoding": "gzip", "Content-Type": "application/json"},
        stream=httpx.ByteStream(b"not gzip at all")
    )


@pytest.mark.asyncio
async def test_undecodable_body_is_rejected():
    client = make_client(corrupt_gzip_response)

    with pytest.raises(RemoteRejected):
        await client.save_data("papers", [])


@pytest.mark.asyncio
async def test_too_many_redirects_maps_to_network_failure():
    def handler(request):
        raise httpx.TooManyRedirects("redirect loop", request=request)

    client = make_client(handler)

    with pytest.raises(NetworkFailure):
        await client.get_data("papers")


@pytest.mark.asyncio
async def test_upload_image_sends_multipart_and_returns_url():
    seen = {}

    def handler(request):
        seen["content_type"] = request.headers["Content-Type"]
        seen["body"] = request.read()
        return httpx.Response(200, json={
            "fileName": "upload_1_abc.jpg",
            "url": f"{BASE_URL}/get-image/upload_1_abc.jpg",
            "storage": "kv_store",
        })

    client = make_client(handler)
    asset = ImageAsset(name="wedding.jpg", content_type="image/jpeg", data=b"\xff\xd8jpegbytes")

    url = await client.upload_image(asset)

    assert url.endswith("/get-image/upload_1_abc.jpg")
    assert seen["content_type"].startswith("multipart/form-data")
    assert b"wedding.jpg" in seen["body"]
    assert b"jpegbytes" in seen["body"]


@pytest.mark.asyncio
async def test_upload_without_url_is_rejected():
    client = make_client(lambda request: httpx.Response(200, json={"success": True}))
    asset = ImageAsset(name="a.jpg", content_type="image/jpeg", data=b"x")

    with pytest.raises(RemoteRejected):
        await client.upload_image(asset)


@pytest.mark.asyncio
async def test_oversize_upload_rejection():
    client = make_client(lambda request: httpx.Response(400, json={"error": "File too large"}))
    asset = ImageAsset(name="a.jpg", content_type="image/jpeg", data=b"x")

    with pytest.raises(RemoteRejected) as exc_info:
        await client.upload_image(asset)

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_get_image_returns_bytes():
    client = make_client(lambda request: httpx.Response(200, content=b"\x89PNG", headers={"Content-Type": "image/png"}))

    assert await client.get_image("a.png") == b"\x89PNG"


@pytest.mark.asyncio
async def test_get_data_by_prefix():
    results = [{"key": "board_a", "data": 1}]
    client = make_client(lambda request: httpx.Response(200, json={"results": results}))

    assert await client.get_data_by_prefix("board_") == results


@pytest.mark.asyncio
async def test_delete_data_uses_delete_method():
    methods = []

    def handler(request):
        methods.append((request.method, request.url.path))
        return httpx.Response(200, json={"success": True})

    client = make_client(handler)
    await client.delete_data("papers")

    assert methods == [("DELETE", "/functions/v1/server/delete-data/papers")]


def test_from_env_disabled_without_url(monkeypatch):
    monkeypatch.delenv("REMOTE_STORAGE_URL", raising=False)

    assert RemoteStorageClient.from_env() is None


def test_from_env_reads_configuration(monkeypatch):
    monkeypatch.setenv("REMOTE_STORAGE_URL", BASE_URL + "/")
    monkeypatch.setenv("REMOTE_STORAGE_API_KEY", "anon-key")
    monkeypatch.setenv("REMOTE_UPLOAD_TIMEOUT", "90")

    client = RemoteStorageClient.from_env()

    assert client.base_url == BASE_URL
    assert client.timeout == 60.0
    assert client.upload_timeout == 90.0
