"""
Cloud Storage BlobStore for trip cover images.

Object path: {trip_images_prefix}/{tripId}.{ext}   (the asset id)
Public URL:  https://storage.googleapis.com/{bucket}/{object_path}

google.cloud.storage is a blocking client, so every call runs in a worker
thread via asyncio.to_thread and never stalls the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from services.cleanup.trips.errors import RemoteUnavailable

logger = logging.getLogger(__name__)


def _get_client(project_id: str = "") -> Any:
    """
    Return a google.cloud.storage.Client.

    Uses Application Default Credentials on Cloud Run.
    """
    from google.cloud import storage  # type: ignore[import-untyped]

    kwargs: dict[str, Any] = {}
    if project_id:
        kwargs["project"] = project_id
    return storage.Client(**kwargs)


class GCSBlobStore:
    def __init__(self, bucket_name: str, project_id: str = "", client: Any = None) -> None:
        self._bucket_name = bucket_name
        self._project_id = project_id
        self._client = client

    def _blob(self, object_path: str) -> Any:
        if self._client is None:
            self._client = _get_client(self._project_id)
        return self._client.bucket(self._bucket_name).blob(object_path)

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        def _put() -> None:
            self._blob(key).upload_from_string(data, content_type=content_type)

        try:
            await asyncio.to_thread(_put)
        except Exception as exc:
            logger.warning(
                "GCS upload failed gs://%s/%s: %s", self._bucket_name, key, exc,
            )
            raise RemoteUnavailable("We couldn't upload the cover image.") from exc

        logger.info("GCS: uploaded %d bytes to gs://%s/%s", len(data), self._bucket_name, key)
        return key

    async def get_download_url(self, asset_id: str) -> str:
        return f"https://storage.googleapis.com/{self._bucket_name}/{asset_id}"

    async def delete(self, asset_id: str) -> None:
        def _remove() -> None:
            blob = self._blob(asset_id)
            if blob.exists():
                blob.delete()

        try:
            await asyncio.to_thread(_remove)
        except Exception as exc:
            logger.warning(
                "GCS delete failed gs://%s/%s: %s", self._bucket_name, asset_id, exc,
            )
            raise RemoteUnavailable("We couldn't remove the cover image.") from exc
