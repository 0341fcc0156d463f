from __future__ import annotations

from typing import Dict, Optional, Tuple

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from storage import BlobExists


class MemoryBlobStore:
    """In-memory stand-in for the GridFS store."""

    bucket_name = "test_files"

    def __init__(self) -> None:
        self.blobs: Dict[str, Tuple[bytes, Optional[str]]] = {}

    def upload(self, name: str, data: bytes, content_type: Optional[str]) -> None:
        if name in self.blobs:
            raise BlobExists(name)
        self.blobs[name] = (data, content_type)

    def download(self, name: str):
        return self.blobs.get(name)

    def status(self) -> dict:
        return {"bucket": self.bucket_name, "files": len(self.blobs)}


@pytest.fixture
def mongo_db(monkeypatch: pytest.MonkeyPatch):
    db = mongomock.MongoClient()["chatroom_test"]
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def client(mongo_db, blob_store: MemoryBlobStore):
    main.app.dependency_overrides[main.get_blob_store] = lambda: blob_store
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
