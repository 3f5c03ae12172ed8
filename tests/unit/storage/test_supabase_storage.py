from __future__ import annotations

import json

import httpx
import pytest

from src.schoolhub.media.media_errors import NotResolvableError, StorageError
from src.schoolhub.storage.supabase_storage import SupabaseStorageClient
from tests.helpers.media import PNG_BYTES, make_upload

BASE = "https://proj.supabase.co"


class Recorder:
    def __init__(self, responder=None) -> None:
        self.requests: list[httpx.Request] = []
        self.responder = responder or (lambda request: httpx.Response(200, json={}))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


def build_client(recorder: Recorder) -> SupabaseStorageClient:
    return SupabaseStorageClient(
        base_url=BASE,
        bucket="media",
        service_key="service-key",
        transport=httpx.MockTransport(recorder),
    )


def test_public_url_and_parse_round_trip() -> None:
    client = build_client(Recorder())

    url = client.public_url("schools/1/a b.png")

    assert url == f"{BASE}/storage/v1/object/public/media/schools/1/a%20b.png"
    assert client.parse_object_key(url) == "schools/1/a b.png"
    assert client.parse_object_key(f"{BASE}/storage/v1/object/sign/media/x.png?token=t") == "x.png"
    assert client.parse_object_key(f"{BASE}/storage/v1/object/public/other/x.png") is None


@pytest.mark.asyncio
async def test_upload_posts_object_with_service_headers() -> None:
    recorder = Recorder()
    client = build_client(recorder)

    stored = await client.upload(make_upload(), "schools/1/images/icon")

    (request,) = recorder.requests
    assert request.method == "POST"
    assert request.url.path == f"/storage/v1/object/media/{stored.object_key}"
    assert request.headers["authorization"] == "Bearer service-key"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["x-upsert"] == "false"
    assert request.headers["content-type"] == "image/png"
    assert request.content == PNG_BYTES
    assert stored.url == client.public_url(stored.object_key)


@pytest.mark.asyncio
async def test_upload_prefers_detected_content_type() -> None:
    recorder = Recorder()
    client = build_client(recorder)
    upload = make_upload(filename="photo.png", content_type="application/octet-stream")

    stored = await client.upload(upload, "posts", content_type="image/png")

    assert recorder.requests[0].headers["content-type"] == "image/png"
    assert stored.content_type == "image/png"


@pytest.mark.asyncio
async def test_upload_error_status_raises_storage_error() -> None:
    client = build_client(Recorder(lambda request: httpx.Response(413, text="too big")))

    with pytest.raises(StorageError, match="413"):
        await client.upload(make_upload(), "posts")


@pytest.mark.asyncio
async def test_transport_failure_raises_storage_error() -> None:
    def explode(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = build_client(Recorder(explode))

    with pytest.raises(StorageError):
        await client.delete("posts/a.png")


@pytest.mark.asyncio
async def test_move_to_trash_uses_move_endpoint() -> None:
    recorder = Recorder()
    client = build_client(recorder)

    trash_url = await client.move_to_trash(client.public_url("posts/a.png"), 30)

    (request,) = recorder.requests
    assert request.url.path == "/storage/v1/object/move"
    assert json.loads(request.content) == {
        "bucketId": "media",
        "sourceKey": "posts/a.png",
        "destinationKey": "spam/posts/a.png",
    }
    assert trash_url == client.public_url("spam/posts/a.png")


@pytest.mark.asyncio
async def test_move_to_trash_rejects_foreign_bucket() -> None:
    client = build_client(Recorder())

    with pytest.raises(NotResolvableError):
        await client.move_to_trash(f"{BASE}/storage/v1/object/public/other/a.png", 30)


@pytest.mark.asyncio
async def test_restore_ignores_missing_trash_object() -> None:
    recorder = Recorder(
        lambda request: httpx.Response(400, json={"statusCode": "404", "error": "not_found"})
    )
    client = build_client(recorder)

    await client.restore_from_trash("posts/a.png")

    body = json.loads(recorder.requests[0].content)
    assert body["sourceKey"] == "spam/posts/a.png"
    assert body["destinationKey"] == "posts/a.png"


@pytest.mark.asyncio
async def test_delete_removes_original_and_trash_twin() -> None:
    recorder = Recorder()
    client = build_client(recorder)

    await client.delete("spam/posts/a.png")

    (request,) = recorder.requests
    assert request.method == "DELETE"
    assert request.url.path == "/storage/v1/object/media"
    assert json.loads(request.content) == {"prefixes": ["posts/a.png", "spam/posts/a.png"]}
