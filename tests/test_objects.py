"""Tests for the object store gateway."""
import io

import pytest
from botocore.exceptions import ClientError

from tests.fakes import TEST_BUCKET, FakeS3Client
from vault.errors import FileTooLarge, InvalidKey, ObjectNotFound, StorageError
from vault.objects import MAX_UPLOAD_SIZE, ObjectStore, object_key


@pytest.mark.parametrize(
    "filename,key",
    [
        ("report.pdf", "report.pdf"),
        ("dir/sub/report.pdf", "report.pdf"),
        ("../../etc/passwd", "passwd"),
        ("/abs/path.txt", "path.txt"),
        ("C:\\Users\\me\\doc.txt", "doc.txt"),
        ("trailing/", "trailing"),
    ],
)
def test_object_key_strips_directories(filename, key):
    assert object_key(filename) == key


@pytest.mark.parametrize("filename", ["", ".", "..", "a/..", "/"])
def test_object_key_rejects_empty(filename):
    with pytest.raises(InvalidKey):
        object_key(filename)


def test_upload_over_limit_rejected_before_transfer(objects, s3):
    class _Unreadable:
        def read(self, *args):
            raise AssertionError("body must not be read")

    with pytest.raises(FileTooLarge):
        objects.upload(_Unreadable(), "huge.iso", MAX_UPLOAD_SIZE + 1, "application/octet-stream")
    assert MAX_UPLOAD_SIZE + 1 == 1_073_741_825
    assert s3.calls == []


def test_upload_at_limit_allowed(objects, s3):
    result = objects.upload(io.BytesIO(b"abc"), "edge.bin", MAX_UPLOAD_SIZE)
    assert result.key == "edge.bin"
    assert s3.calls == ["PutObject"]


def test_upload_defaults_content_type(objects, s3):
    objects.upload(io.BytesIO(b"abc"), "x", 3, None)
    assert s3.objects["x"]["content_type"] == "application/octet-stream"


def test_upload_returns_result(objects):
    result = objects.upload(io.BytesIO(b"12345"), "nested/five.txt", 5, "text/plain")
    assert result.key == "five.txt"
    assert result.size == 5
    assert result.duration >= 0


def test_upload_fault(objects, s3):
    s3.failing.add("PutObject")
    with pytest.raises(StorageError):
        objects.upload(io.BytesIO(b"x"), "x", 1)


def test_list_discards_partial_results(objects, s3):
    for name in ("a", "b", "c"):
        objects.upload(io.BytesIO(b"x"), name, 1)

    class _FailingSecondPage:
        def paginate(self, Bucket):
            yield {"Contents": [{"Key": "a", "Size": 1}]}
            raise ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "ListObjectsV2")

    s3.get_paginator = lambda name: _FailingSecondPage()
    with pytest.raises(StorageError):
        objects.list_objects()


def test_download_streams_bytes(objects):
    data = bytes(range(256)) * 1000
    objects.upload(io.BytesIO(data), "blob.bin", len(data), "application/x-test")
    meta, chunks = objects.download("blob.bin")
    assert meta.size == len(data)
    assert meta.content_type == "application/x-test"
    assert b"".join(chunks) == data


def test_download_missing(objects):
    with pytest.raises(ObjectNotFound):
        objects.download("missing")


def test_download_fault_is_not_found(objects, s3):
    objects.upload(io.BytesIO(b"x"), "x", 1)
    s3.failing.add("GetObject")
    with pytest.raises(ObjectNotFound):
        objects.download("x")


def test_download_mid_stream_fault(objects, s3):
    class _BrokenBody:
        closed = False

        def iter_chunks(self, chunk_size):
            yield b"partial"
            raise OSError("connection reset")

        def close(self):
            self.closed = True

    body = _BrokenBody()
    s3.get_object = lambda Bucket, Key: {"Body": body, "ContentLength": 100, "ContentType": "text/plain"}
    _, stream = objects.download("x")
    chunks = iter(stream)
    assert next(chunks) == b"partial"
    with pytest.raises(StorageError):
        next(chunks)
    assert body.closed


def test_download_close_before_reading(objects, s3):
    class _Body:
        closed = False

        def iter_chunks(self, chunk_size):
            raise AssertionError("body must not be read")

        def close(self):
            self.closed = True

    body = _Body()
    s3.get_object = lambda Bucket, Key: {"Body": body, "ContentLength": 3, "ContentType": "text/plain"}
    _, stream = objects.download("x")
    stream.close()
    assert body.closed


def test_delete(objects, s3):
    objects.upload(io.BytesIO(b"x"), "x", 1)
    objects.delete("x")
    assert "x" not in s3.objects


def test_delete_fault(objects, s3):
    s3.failing.add("DeleteObject")
    with pytest.raises(StorageError):
        objects.delete("x")


def test_ensure_bucket_creates_missing():
    s3 = FakeS3Client(bucket_exists=False)
    ObjectStore(s3, TEST_BUCKET).ensure_bucket()
    assert TEST_BUCKET in s3.buckets
    assert s3.calls == ["HeadBucket", "CreateBucket"]


def test_ensure_bucket_existing(objects, s3):
    objects.ensure_bucket()
    assert s3.calls == ["HeadBucket"]


def test_ensure_bucket_fault():
    s3 = FakeS3Client()
    s3.failing.add("HeadBucket")
    with pytest.raises(StorageError):
        ObjectStore(s3, TEST_BUCKET).ensure_bucket()
