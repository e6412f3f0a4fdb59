"""Object store gateway: upload, list, download and delete against one S3/MinIO bucket."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath
from typing import BinaryIO, Iterator, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from vault.errors import FileTooLarge, InvalidKey, ObjectNotFound, StorageError

logger = logging.getLogger("filevault.objects")

MAX_UPLOAD_SIZE = 1024 * 1024 * 1024  # 1 GiB
DOWNLOAD_CHUNK_SIZE = 64 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_NOT_FOUND_CODES = {"404", "NoSuchBucket", "NotFound"}


@dataclass(frozen=True)
class StoredObject:
    key: str
    size: int
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class UploadResult:
    key: str
    size: int
    duration: float  # seconds


def object_key(filename: str) -> str:
    """Strip directory components from an uploaded filename so it cannot escape the key namespace."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    if name in ("", ".", ".."):
        raise InvalidKey(filename)
    return name


class ObjectStream:
    """Chunks of one object's body. close() releases the connection even if iteration never started."""

    def __init__(self, key: str, body):
        self.key = key
        self._body = body

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self._body.iter_chunks(DOWNLOAD_CHUNK_SIZE)
        except (BotoCoreError, ClientError, OSError) as e:
            # Headers and part of the body may already be sent
            logger.error("Error streaming %s: %s", self.key, e)
            raise StorageError(f"Error downloading {self.key!r}: {e}") from e
        finally:
            self.close()

    def close(self) -> None:
        self._body.close()


def create_s3_client(endpoint_url: str, access_key_id: str, secret_access_key: str):
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        region_name="us-east-1",
        config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


class ObjectStore:
    """Thin pass-through to an S3-compatible client, scoped to one bucket.

    All methods block on network I/O; async callers should run them in a thread pool.
    """

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    def ensure_bucket(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.bucket)
            logger.info("Bucket '%s' already exists.", self.bucket)
            return
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") not in _NOT_FOUND_CODES:
                raise StorageError(f"Error checking bucket {self.bucket!r}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Error reaching object store: {e}") from e

        logger.info("Bucket '%s' not found, creating it...", self.bucket)
        try:
            self.client.create_bucket(Bucket=self.bucket)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Error creating bucket {self.bucket!r}: {e}") from e
        logger.info("Bucket '%s' created.", self.bucket)

    def upload(
        self,
        stream: BinaryIO,
        filename: str,
        size: int,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        if size > MAX_UPLOAD_SIZE:
            logger.warning("Rejected upload %s: %d bytes exceeds limit", filename, size)
            raise FileTooLarge(f"{filename} is {size} bytes; limit is {MAX_UPLOAD_SIZE}")
        key = object_key(filename)
        logger.info("Upload started: %s, size: %d bytes, content-type: %s", key, size, content_type)

        start = time.monotonic()
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=stream,
                ContentLength=size,
                ContentType=content_type or DEFAULT_CONTENT_TYPE,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Error uploading %s: %s", key, e)
            raise StorageError(f"Error uploading {key!r}: {e}") from e
        duration = time.monotonic() - start

        logger.info("Uploaded %s (%d bytes) in %.3fs", key, size, duration)
        return UploadResult(key=key, size=size, duration=duration)

    def list_objects(self) -> list[StoredObject]:
        """All objects in the bucket. The first page that fails aborts the whole listing."""
        start = time.monotonic()
        objects = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket):
                for item in page.get("Contents", []):
                    objects.append(
                        StoredObject(
                            key=item["Key"],
                            size=item["Size"],
                            last_modified=item.get("LastModified"),
                        )
                    )
        except (BotoCoreError, ClientError) as e:
            logger.error("Error listing bucket %s: %s", self.bucket, e)
            raise StorageError(f"Error listing files: {e}") from e
        logger.info("Listed %d files in %.3fs", len(objects), time.monotonic() - start)
        return objects

    def download(self, key: str) -> tuple[StoredObject, ObjectStream]:
        """Return the object's metadata and a closable stream of its bytes."""
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.info("Object %s not retrievable: %s", key, e)
            raise ObjectNotFound(key) from e

        meta = StoredObject(
            key=key,
            size=response["ContentLength"],
            last_modified=response.get("LastModified"),
            content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE,
        )
        return meta, ObjectStream(key, response["Body"])

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("Error deleting %s: %s", key, e)
            raise StorageError(f"Error deleting {key!r}: {e}") from e
        logger.info("Deleted %s", key)
