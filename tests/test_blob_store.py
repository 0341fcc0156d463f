from __future__ import annotations

import logging
from typing import Dict, Optional

import mongomock
import pytest

from storage import BlobExists, BlobStore


class _GridOut:
    def __init__(self, data: bytes, metadata: Optional[dict]) -> None:
        self._data = data
        self.metadata = metadata

    def read(self) -> bytes:
        return self._data


class FakeGridBucket:
    """Writes GridFS-shaped file documents; chunk bytes are kept in memory."""

    def __init__(self, db, bucket_name: str) -> None:
        self.files = db[f"{bucket_name}.files"]
        self.chunks: Dict[object, bytes] = {}

    def upload_from_stream(self, filename: str, source: bytes, metadata: Optional[dict] = None):
        file_id = self.files.insert_one({"filename": filename, "length": len(source), "metadata": metadata}).inserted_id
        self.chunks[file_id] = source
        return file_id

    def open_download_stream(self, file_id) -> _GridOut:
        doc = self.files.find_one({"_id": file_id})
        return _GridOut(self.chunks[file_id], doc.get("metadata"))


@pytest.fixture
def store() -> BlobStore:
    db = mongomock.MongoClient()["blobs_test"]
    return BlobStore(db, bucket_name="chat_files", bucket=FakeGridBucket(db, "chat_files"))


def test_ensure_bucket_creates_once_and_logs(store: BlobStore, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="chatroom.storage")

    assert store.ensure_bucket() is True
    assert store.ensure_bucket() is False

    assert "chat_files.files" in store.db.list_collection_names()
    created = [r for r in caplog.records if r.getMessage() == "Created storage bucket: chat_files"]
    assert len(created) == 1


def test_upload_then_download_keeps_content_type(store: BlobStore) -> None:
    store.upload("1_abc.png", b"png-bytes", "image/png")

    assert store.exists("1_abc.png")
    assert store.download("1_abc.png") == (b"png-bytes", "image/png")
    assert store.status() == {"bucket": "chat_files", "files": 1}


def test_upload_refuses_existing_name(store: BlobStore) -> None:
    store.upload("bg_1.jpg", b"one", "image/jpeg")

    with pytest.raises(BlobExists):
        store.upload("bg_1.jpg", b"two", "image/jpeg")

    assert store.download("bg_1.jpg") == (b"one", "image/jpeg")


def test_download_missing_blob(store: BlobStore) -> None:
    assert store.download("nope.txt") is None
    assert not store.exists("nope.txt")
