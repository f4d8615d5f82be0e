"""Object storage for document payloads.

Uploads and downloads never pass through the API: callers receive presigned
URLs and talk to the bucket directly. Only deletion is performed server-side.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import uuid
from typing import Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from docnotes.config import Settings, settings

logger = logging.getLogger("docnotes.storage")


class StorageError(RuntimeError):
    """Raised when the object store rejects or fails a request."""


def generate_object_key(patient_id: uuid.UUID | str, file_name: str) -> str:
    """Build an unguessable key: ``patients/<patient_id>/<16 hex>[.<ext>]``."""
    random_part = secrets.token_hex(8)
    ext = file_name.rsplit(".", 1)[-1] if "." in file_name else ""
    suffix = f".{ext}" if ext else ""
    return f"patients/{patient_id}/{random_part}{suffix}"


class ObjectStorage(Protocol):
    def presigned_upload_url(self, key: str, mime_type: str, size_bytes: int) -> str:
        ...

    def presigned_download_url(self, key: str, file_name: str) -> str:
        ...

    async def delete_object(self, key: str) -> None:
        ...


class S3Storage:
    """S3 (or S3-compatible) bucket accessed through boto3."""

    def __init__(self, config: Settings = settings, client=None):
        self.bucket = config.s3_bucket
        self.upload_expires = config.s3_upload_url_expire_seconds
        self.download_expires = config.s3_download_url_expire_seconds
        self._config = config
        self._client = client

    @property
    def client(self):
        if self._client is None:
            kwargs = {"region_name": self._config.s3_region}
            if self._config.s3_endpoint_url:
                kwargs["endpoint_url"] = self._config.s3_endpoint_url
                kwargs["config"] = Config(s3={"addressing_style": "path"})
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def presigned_upload_url(self, key: str, mime_type: str, size_bytes: int) -> str:
        return self.client.generate_presigned_url(
            "put_object",
            Params={
                "Bucket": self.bucket,
                "Key": key,
                "ContentType": mime_type,
                "ContentLength": size_bytes,
            },
            ExpiresIn=self.upload_expires,
        )

    def presigned_download_url(self, key: str, file_name: str) -> str:
        return self.client.generate_presigned_url(
            "get_object",
            Params={
                "Bucket": self.bucket,
                "Key": key,
                "ResponseContentDisposition": f'attachment; filename="{quote(file_name)}"',
            },
            ExpiresIn=self.download_expires,
        )

    async def delete_object(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.delete_object, Bucket=self.bucket, Key=key
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("Failed to delete object %s: %s", key, exc)
            raise StorageError(f"Failed to delete object {key}") from exc
        logger.info("Deleted object %s", key)


class InMemoryStorage:
    """Bucket stand-in for tests and local demos; URLs are fake but stable."""

    def __init__(self, base_url: str = "https://storage.test"):
        self.base_url = base_url
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_deletes = False

    def presigned_upload_url(self, key: str, mime_type: str, size_bytes: int) -> str:
        return f"{self.base_url}/{key}?method=PUT&content-type={quote(mime_type)}&size={size_bytes}"

    def presigned_download_url(self, key: str, file_name: str) -> str:
        return f"{self.base_url}/{key}?method=GET&filename={quote(file_name)}"

    async def delete_object(self, key: str) -> None:
        if self.fail_deletes:
            raise StorageError(f"Failed to delete object {key}")
        self.objects.pop(key, None)
        self.deleted.append(key)
