"""
Blob store client for rehosting inbound attachments.

Targets the Supabase storage REST API: objects are uploaded under a bucket
and served from its public URL.
"""

from __future__ import annotations

import mimetypes
import uuid
from typing import Optional

import requests
import structlog

from guest_messaging import config

logger = structlog.get_logger(__name__)


class BlobStoreError(Exception):
    """Upload, download or delete against the blob store failed."""


class BlobStore:
    def __init__(self, base_url: str, api_key: str, bucket: str, timeout: float = 15.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout = timeout

    def _headers(self, content_type: Optional[str] = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.api_key}", "apikey": self.api_key}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def upload(self, data: bytes, path: str, content_type: str = "application/octet-stream") -> str:
        """
        Store bytes at ``path`` and return the public URL.

        Raises:
            BlobStoreError: If the store rejects the upload
        """
        try:
            res = requests.post(
                f"{self.base_url}/storage/v1/object/{self.bucket}/{path}",
                headers={**self._headers(content_type), "x-upsert": "true"},
                data=data,
                timeout=self.timeout,
            )
            res.raise_for_status()
        except requests.RequestException as e:
            raise BlobStoreError(f"upload of {path} failed: {e}") from e
        return self.public_url(path)

    def delete(self, path: str) -> None:
        try:
            res = requests.delete(
                f"{self.base_url}/storage/v1/object/{self.bucket}",
                headers=self._headers("application/json"),
                json={"prefixes": [path]},
                timeout=self.timeout,
            )
            res.raise_for_status()
        except requests.RequestException as e:
            raise BlobStoreError(f"delete of {path} failed: {e}") from e


def build_blob_store() -> Optional[BlobStore]:
    if not (config.BLOB_STORE_URL and config.BLOB_STORE_API_KEY):
        return None
    return BlobStore(config.BLOB_STORE_URL, config.BLOB_STORE_API_KEY, config.BLOB_STORE_BUCKET)


def rehost_images(store: BlobStore, urls: list[str], prefix: str, timeout: float = 15.0) -> list[str]:
    """
    Copy provider-hosted images (whose URLs expire) into the blob store.

    An image that cannot be copied keeps its original URL and is logged.

    Returns:
        list[str]: Public URLs in the same order as ``urls``
    """
    rehosted: list[str] = []
    for url in urls:
        try:
            res = requests.get(url, timeout=timeout)
            res.raise_for_status()
            content_type = res.headers.get("Content-Type", "application/octet-stream").split(";")[0]
            extension = mimetypes.guess_extension(content_type) or ""
            path = f"{prefix}/{uuid.uuid4().hex}{extension}"
            rehosted.append(store.upload(res.content, path, content_type))
        except (requests.RequestException, BlobStoreError) as e:
            logger.warning("image_rehost_failed", url=url, error=str(e))
            rehosted.append(url)
    return rehosted
