"""Unit tests for blob storage backends."""

from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError

from services.blob_store import LocalBlobStore, R2BlobStore, extension_for


@pytest.mark.unit
@pytest.mark.parametrize(
    "content_type,expected",
    [("image/webp", ".webp"), ("audio/mpeg", ".mp3"), ("application/x-unknown-thing", ".bin")],
)
def test_extension_for(content_type, expected):
    assert extension_for(content_type) == expected


@pytest.mark.unit
class TestLocalBlobStore:
    @pytest.mark.asyncio
    async def test_put_get_url_delete(self, tmp_path):
        store = LocalBlobStore(str(tmp_path / "blobs"), base_url="/api/blobs/")

        blob_id = await store.put(b"audio", "audio/mpeg")

        assert blob_id.endswith(".mp3")
        assert store.path_for(blob_id).read_bytes() == b"audio"
        assert await store.get_url(blob_id) == f"/api/blobs/{blob_id}"

        await store.delete(blob_id)

        assert await store.get_url(blob_id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, tmp_path):
        store = LocalBlobStore(str(tmp_path))

        await store.delete("missing.webp")

    @pytest.mark.asyncio
    async def test_rejects_path_traversal(self, tmp_path):
        store = LocalBlobStore(str(tmp_path / "blobs"))

        with pytest.raises(ValueError):
            store.path_for("../secret.txt")
        assert await store.get_url("../secret.txt") is None


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


@pytest.mark.unit
class TestR2BlobStore:
    @pytest.fixture
    def s3(self):
        client = Mock()
        client.generate_presigned_url.return_value = "https://r2.test/signed"
        with patch("services.blob_store.boto3.client", return_value=client):
            yield client

    @pytest.mark.asyncio
    async def test_put_uses_prefixed_key(self, s3):
        store = R2BlobStore("acct", "key", "secret", bucket_name="bucket")

        blob_id = await store.put(b"img", "image/webp")

        kwargs = s3.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "bucket"
        assert kwargs["Key"] == f"storyboard/{blob_id}"
        assert kwargs["ContentType"] == "image/webp"

    @pytest.mark.asyncio
    async def test_get_url_presigns(self, s3):
        store = R2BlobStore("acct", "key", "secret", url_expires_in=60)

        assert await store.get_url("a.webp") == "https://r2.test/signed"
        assert s3.generate_presigned_url.call_args.kwargs["ExpiresIn"] == 60

    @pytest.mark.asyncio
    async def test_get_url_missing_object(self, s3):
        s3.head_object.side_effect = _client_error("404")
        store = R2BlobStore("acct", "key", "secret")

        assert await store.get_url("gone.webp") is None

    @pytest.mark.asyncio
    async def test_get_url_other_errors_propagate(self, s3):
        s3.head_object.side_effect = _client_error("AccessDenied")
        store = R2BlobStore("acct", "key", "secret")

        with pytest.raises(ClientError):
            await store.get_url("a.webp")
