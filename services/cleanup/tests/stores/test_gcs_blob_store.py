"""
Tests for services.cleanup.stores.gcs

Covers:
- upload writes bytes + content type under the given key and returns it as the asset id
- download URL is the public storage.googleapis.com URL
- delete removes an existing object, ignores a missing one
- client errors surface as RemoteUnavailable
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from services.cleanup.stores.gcs import GCSBlobStore
from services.cleanup.trips.errors import RemoteUnavailable


# ---------------------------------------------------------------------------
# Helpers: in-memory GCS client
# ---------------------------------------------------------------------------


class _InMemoryBlob:
    def __init__(self, bucket: "_InMemoryBucket", path: str):
        self._bucket = bucket
        self._path = path

    def exists(self) -> bool:
        return self._path in self._bucket.objects

    def upload_from_string(self, data: bytes, content_type: str = "") -> None:
        self._bucket.objects[self._path] = (data, content_type)

    def delete(self) -> None:
        del self._bucket.objects[self._path]


class _InMemoryBucket:
    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}

    def blob(self, path: str) -> _InMemoryBlob:
        return _InMemoryBlob(self, path)


class _InMemoryGCSClient:
    def __init__(self):
        self._buckets: dict[str, _InMemoryBucket] = {}

    def bucket(self, name: str) -> _InMemoryBucket:
        if name not in self._buckets:
            self._buckets[name] = _InMemoryBucket()
        return self._buckets[name]


def _make_gcs_patcher(client):
    return patch("services.cleanup.stores.gcs._get_client", return_value=client)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestGCSBlobStore:
    async def test_upload_returns_key(self):
        client = _InMemoryGCSClient()
        with _make_gcs_patcher(client):
            store = GCSBlobStore("covers")
            asset_id = await store.upload("tripImages/t1.png", b"png-bytes", "image/png")

        assert asset_id == "tripImages/t1.png"
        assert client.bucket("covers").objects["tripImages/t1.png"] == (b"png-bytes", "image/png")

    async def test_client_created_once(self):
        client = _InMemoryGCSClient()
        with _make_gcs_patcher(client) as get_client:
            store = GCSBlobStore("covers", project_id="proj")
            await store.upload("a.jpg", b"1", "image/jpeg")
            await store.upload("b.jpg", b"2", "image/jpeg")
        get_client.assert_called_once_with("proj")

    async def test_download_url(self):
        store = GCSBlobStore("covers", client=_InMemoryGCSClient())
        url = await store.get_download_url("tripImages/t1.jpg")
        assert url == "https://storage.googleapis.com/covers/tripImages/t1.jpg"

    async def test_delete_existing(self):
        client = _InMemoryGCSClient()
        store = GCSBlobStore("covers", client=client)
        await store.upload("tripImages/t1.jpg", b"x", "image/jpeg")
        await store.delete("tripImages/t1.jpg")
        assert client.bucket("covers").objects == {}

    async def test_delete_missing_is_noop(self):
        store = GCSBlobStore("covers", client=_InMemoryGCSClient())
        await store.delete("tripImages/never.jpg")

    async def test_upload_error_is_remote_unavailable(self):
        client = MagicMock()
        client.bucket.return_value.blob.return_value.upload_from_string.side_effect = OSError("reset")
        store = GCSBlobStore("covers", client=client)
        with pytest.raises(RemoteUnavailable):
            await store.upload("k.jpg", b"x", "image/jpeg")

    async def test_delete_error_is_remote_unavailable(self):
        client = MagicMock()
        client.bucket.return_value.blob.return_value.exists.side_effect = OSError("reset")
        store = GCSBlobStore("covers", client=client)
        with pytest.raises(RemoteUnavailable):
            await store.delete("k.jpg")
