"""Tests for blob storage backends."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from src.blobs import LocalBlobStore, S3BlobStore, make_image_key
from src.errors import StorageError

# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


def test_image_key_includes_owner_and_content_hash() -> None:
    key = make_image_key("My Photo.JPG", b"abc", "m1")
    assert key.startswith("memories/m1/my-photo-")
    assert key.endswith(".jpg")
    assert make_image_key("My Photo.JPG", b"abc", "m1") == key
    assert make_image_key("My Photo.JPG", b"abd", "m1") != key


def test_same_image_for_different_memories_gets_different_keys() -> None:
    assert make_image_key("a.jpg", b"same", "m1") != make_image_key("a.jpg", b"same", "m2")


def test_image_key_without_name() -> None:
    assert make_image_key("", b"x", "m1").startswith("memories/m1/image-")


# ---------------------------------------------------------------------------
# LocalBlobStore
# ---------------------------------------------------------------------------


async def test_put_returns_public_url(blobs: LocalBlobStore) -> None:
    url = await blobs.put("memories/a.jpg", b"data", "image/jpeg")
    assert url == "http://test.local/blobs/memories/a.jpg"
    assert await blobs.read("memories/a.jpg") == b"data"


async def test_list_and_delete(blobs: LocalBlobStore) -> None:
    await blobs.put("memories/a.jpg", b"1", "image/jpeg")
    await blobs.put("memories/b.png", b"2", "image/png")
    assert await blobs.list_keys() == ["memories/a.jpg", "memories/b.png"]

    assert await blobs.delete("memories/a.jpg") is True
    assert await blobs.delete("memories/a.jpg") is False
    assert await blobs.exists("memories/a.jpg") is False
    assert await blobs.list_keys() == ["memories/b.png"]


async def test_read_missing(blobs: LocalBlobStore) -> None:
    with pytest.raises(FileNotFoundError):
        await blobs.read("memories/none.jpg")


def test_resolve_rejects_parent_components(blobs: LocalBlobStore) -> None:
    with pytest.raises(ValueError, match="empty after sanitization"):
        blobs.resolve("../../etc/passwd")


def test_resolve_sanitizes_components(blobs: LocalBlobStore) -> None:
    path = blobs.resolve("memories/my photo!.jpg")
    assert path == blobs.root / "memories" / "my_photo_.jpg"


def test_resolve_empty_raises(blobs: LocalBlobStore) -> None:
    with pytest.raises(ValueError, match="empty after sanitization"):
        blobs.resolve("/")


async def test_put_too_large(blobs: LocalBlobStore, monkeypatch) -> None:
    monkeypatch.setattr("src.blobs.MAX_BLOB_SIZE", 3)
    with pytest.raises(StorageError, match="too large"):
        await blobs.put("memories/a.jpg", b"1234", "image/jpeg")


# ---------------------------------------------------------------------------
# S3BlobStore
# ---------------------------------------------------------------------------


async def test_s3_put_uploads_with_content_type() -> None:
    client = MagicMock()
    store = S3BlobStore(bucket="pins", client=client)

    url = await store.put("memories/a.jpg", b"data", "image/jpeg")

    assert url == "https://pins.s3.amazonaws.com/memories/a.jpg"
    _, kwargs = client.upload_fileobj.call_args
    assert kwargs["Bucket"] == "pins"
    assert kwargs["Key"] == "memories/a.jpg"
    assert kwargs["ExtraArgs"] == {"ContentType": "image/jpeg"}
    assert kwargs["Fileobj"].read() == b"data"


async def test_s3_put_failure_raises_storage_error() -> None:
    client = MagicMock()
    client.upload_fileobj.side_effect = RuntimeError("boom")
    store = S3BlobStore(bucket="pins", client=client)

    with pytest.raises(StorageError, match="upload failed"):
        await store.put("memories/a.jpg", b"data", "image/jpeg")


async def test_s3_delete_and_list() -> None:
    client = MagicMock()
    client.list_objects_v2.return_value = {"Contents": [{"Key": "memories/b"}, {"Key": "memories/a"}]}
    store = S3BlobStore(bucket="pins", client=client)

    assert await store.delete("memories/a") is True
    client.delete_object.assert_called_once_with(Bucket="pins", Key="memories/a")
    assert await store.list_keys() == ["memories/a", "memories/b"]


async def test_s3_exists_false_on_client_error() -> None:
    client = MagicMock()
    client.head_object.side_effect = ClientError({"Error": {"Code": "404"}}, "HeadObject")
    store = S3BlobStore(bucket="pins", client=client)
    assert await store.exists("memories/a") is False


def test_s3_requires_bucket(monkeypatch) -> None:
    monkeypatch.setattr("src.config.settings.s3_bucket", "")
    with pytest.raises(ValueError, match="S3 bucket"):
        S3BlobStore(client=MagicMock())
