"""Unit tests for attachment rehosting."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
import requests

from guest_messaging.storage.blob import BlobStore, BlobStoreError, build_blob_store, rehost_images


def _image(content_type: str = "image/jpeg") -> Mock:
    res = Mock()
    res.content = b"\xff\xd8"
    res.headers = {"Content-Type": content_type}
    return res


@pytest.mark.unit
@patch("guest_messaging.storage.blob.requests.post")
@patch("guest_messaging.storage.blob.requests.get")
def test_images_are_copied_under_the_prefix(mock_get: Mock, mock_post: Mock) -> None:
    mock_get.return_value = _image("image/png; charset=binary")
    store = BlobStore("https://blobs.example.test/", "key", "attachments")

    urls = rehost_images(store, ["https://provider.example.test/1"], prefix="reservations/7")

    assert len(urls) == 1
    assert urls[0].startswith(
        "https://blobs.example.test/storage/v1/object/public/attachments/reservations/7/"
    )
    assert urls[0].endswith(".png")
    assert mock_post.call_args.kwargs["headers"]["Content-Type"] == "image/png"


@pytest.mark.unit
@patch("guest_messaging.storage.blob.requests.post")
@patch("guest_messaging.storage.blob.requests.get")
def test_failed_copy_keeps_original_url(mock_get: Mock, mock_post: Mock) -> None:
    mock_get.side_effect = [requests.ConnectionError("expired"), _image()]
    mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("403")
    store = BlobStore("https://blobs.example.test", "key", "attachments")

    urls = rehost_images(store, ["https://a.test/1", "https://a.test/2"], prefix="p")

    assert urls == ["https://a.test/1", "https://a.test/2"]


@pytest.mark.unit
@patch("guest_messaging.storage.blob.requests.post")
def test_upload_error_is_wrapped(mock_post: Mock) -> None:
    mock_post.side_effect = requests.Timeout("slow")

    with pytest.raises(BlobStoreError):
        BlobStore("https://blobs.example.test", "key", "b").upload(b"x", "a/b.jpg")


@pytest.mark.unit
@patch("guest_messaging.storage.blob.config.BLOB_STORE_URL", "")
def test_blob_store_is_optional() -> None:
    assert build_blob_store() is None


@pytest.mark.unit
@patch("guest_messaging.storage.blob.requests.delete")
def test_delete_removes_object_by_prefix(mock_delete: Mock) -> None:
    BlobStore("https://blobs.example.test", "key", "attachments").delete("p/a.jpg")

    assert mock_delete.call_args.args[0] == "https://blobs.example.test/storage/v1/object/attachments"
    assert mock_delete.call_args.kwargs["json"] == {"prefixes": ["p/a.jpg"]}


@pytest.mark.unit
@patch("guest_messaging.storage.blob.requests.delete")
def test_delete_error_is_wrapped(mock_delete: Mock) -> None:
    mock_delete.return_value.raise_for_status.side_effect = requests.HTTPError("404")

    with pytest.raises(BlobStoreError):
        BlobStore("https://blobs.example.test", "key", "b").delete("missing.jpg")
