"""Blob storage for generated scene images and voiceover audio.

Blobs are append-only from the storyboard's point of view: replacing an image
or voiceover stores a new blob and repoints the owning record. Two backends:

- R2BlobStore: Cloudflare R2 (S3-compatible) via boto3, presigned read URLs
- LocalBlobStore: a directory on disk, served by the API under /api/blobs
"""

import asyncio
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

CONTENT_TYPE_EXTENSIONS = {
    "image/png": ".png",
    "image/webp": ".webp",
    "image/jpeg": ".jpg",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/ogg": ".ogg",
}


def extension_for(content_type: str) -> str:
    """File extension for a content type, ".bin" if unknown."""
    return CONTENT_TYPE_EXTENSIONS.get(content_type) or mimetypes.guess_extension(content_type) or ".bin"


class BlobStore(Protocol):
    """Content store contract used by the orchestrators."""

    async def put(self, data: bytes, content_type: str) -> str: ...

    async def get_url(self, blob_id: str) -> str | None: ...

    async def delete(self, blob_id: str) -> None: ...


class LocalBlobStore:
    """Blob store backed by a local directory.

    Blob ids are the stored file names, e.g. ``3f2c....webp``.
    """

    def __init__(self, root_dir: str, base_url: str = "/api/blobs"):
        """Initialize local storage.

        Args:
            root_dir: Directory that holds the blobs (created if missing)
            base_url: URL prefix under which blobs are served
        """
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    def path_for(self, blob_id: str) -> Path:
        """Resolve a blob id to its file, rejecting ids that escape root_dir."""
        path = (self.root_dir / blob_id).resolve()
        if path.parent != self.root_dir.resolve():
            raise ValueError(f"Invalid blob id: {blob_id}")
        return path

    async def put(self, data: bytes, content_type: str) -> str:
        blob_id = f"{uuid.uuid4().hex}{extension_for(content_type)}"
        await asyncio.to_thread(self.path_for(blob_id).write_bytes, data)
        logger.info(f"Stored blob {blob_id} ({len(data)} bytes)")
        return blob_id

    async def get_url(self, blob_id: str) -> str | None:
        try:
            path = self.path_for(blob_id)
        except ValueError:
            return None
        if not path.exists():
            return None
        return f"{self.base_url}/{blob_id}"

    async def delete(self, blob_id: str) -> None:
        path = self.path_for(blob_id)
        if path.exists():
            await asyncio.to_thread(path.unlink)
            logger.info(f"Deleted blob {blob_id}")


class R2BlobStore:
    """Cloudflare R2 object storage.

    Uses boto3 with S3-compatible API. Read URLs are presigned and
    time-limited, so callers must resolve them on every read.
    """

    def __init__(
        self,
        account_id: str,
        access_key_id: str,
        secret_access_key: str,
        bucket_name: str = "scenecraft-media",
        key_prefix: str = "storyboard/",
        url_expires_in: int = 3600,
    ):
        """Initialize R2 storage.

        Args:
            account_id: Cloudflare account ID
            access_key_id: R2 API access key ID
            secret_access_key: R2 API secret access key
            bucket_name: R2 bucket name
            key_prefix: Prefix for every object key
            url_expires_in: Lifetime of presigned read URLs in seconds
        """
        self.bucket_name = bucket_name
        self.key_prefix = key_prefix
        self.url_expires_in = url_expires_in

        self._client = boto3.client(
            "s3",
            endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name="auto",
            config=Config(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "adaptive"},
            ),
        )

        logger.info(f"R2 blob store initialized for bucket: {bucket_name}")

    def _key(self, blob_id: str) -> str:
        return f"{self.key_prefix}{blob_id}"

    async def put(self, data: bytes, content_type: str) -> str:
        blob_id = f"{uuid.uuid4().hex}{extension_for(content_type)}"
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket_name,
                Key=self._key(blob_id),
                Body=data,
                ContentType=content_type,
            )
        except ClientError as e:
            logger.error(f"Failed to upload {blob_id}: {e}")
            raise
        logger.info(f"Uploaded {blob_id} to R2 ({len(data)} bytes)")
        return blob_id

    async def get_url(self, blob_id: str) -> str | None:
        try:
            await asyncio.to_thread(
                self._client.head_object, Bucket=self.bucket_name, Key=self._key(blob_id)
            )
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": self._key(blob_id)},
                ExpiresIn=self.url_expires_in,
            )
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
                return None
            logger.error(f"Failed to resolve URL for {blob_id}: {e}")
            raise

    async def delete(self, blob_id: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.delete_object, Bucket=self.bucket_name, Key=self._key(blob_id)
            )
            logger.info(f"Deleted {blob_id} from R2")
        except ClientError as e:
            if e.response["Error"]["Code"] == "NoSuchKey":
                return
            logger.error(f"Failed to delete {blob_id}: {e}")
            raise
