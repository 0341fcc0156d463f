"""
Blob store for chat attachments and background images

Files live in a GridFS bucket next to the key-value table. They are never
exposed directly: clients get a signed /files/<name> link whose token carries
the blob name and an expiry, HMAC-signed with SECRET_KEY.
"""
import hashlib
import hmac
import json
import logging
import os
import secrets
import string
import time
from typing import Optional, Tuple
from urllib.parse import quote

from fastapi import HTTPException
from gridfs import GridFSBucket

logger = logging.getLogger("chatroom.storage")

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change")
BLOB_BUCKET = os.getenv("BLOB_BUCKET", "chat_files")
SIGNED_URL_TTL_SECONDS = int(os.getenv("SIGNED_URL_TTL_SECONDS", str(315360000)))  # 10 years


class BlobExists(Exception):
    pass


class BlobStore:
    def __init__(self, database, bucket_name: str = BLOB_BUCKET, bucket=None):
        self.db = database
        self.bucket_name = bucket_name
        self.bucket = bucket if bucket is not None else GridFSBucket(database, bucket_name=bucket_name)

    @property
    def files(self):
        return self.db[f"{self.bucket_name}.files"]

    def ensure_bucket(self) -> bool:
        """Create the bucket collections if missing. Returns True when created."""
        existing = self.db.list_collection_names()
        if f"{self.bucket_name}.files" in existing:
            return False
        self.db.create_collection(f"{self.bucket_name}.files")
        self.files.create_index([("filename", 1), ("uploadDate", 1)])
        self.db[f"{self.bucket_name}.chunks"].create_index([("files_id", 1), ("n", 1)], unique=True)
        logger.info("Created storage bucket: %s", self.bucket_name)
        return True

    def exists(self, name: str) -> bool:
        return self.files.find_one({"filename": name}) is not None

    def upload(self, name: str, data: bytes, content_type: Optional[str]) -> None:
        if self.exists(name):
            raise BlobExists(name)
        self.bucket.upload_from_stream(name, data, metadata={"contentType": content_type})

    def download(self, name: str) -> Optional[Tuple[bytes, Optional[str]]]:
        doc = self.files.find_one({"filename": name})
        if doc is None:
            return None
        grid_out = self.bucket.open_download_stream(doc["_id"])
        metadata = grid_out.metadata or {}
        return grid_out.read(), metadata.get("contentType")

    def status(self) -> dict:
        return {"bucket": self.bucket_name, "files": self.files.estimated_document_count()}


# ---------------- naming ----------------

def _extension(filename: Optional[str]) -> str:
    # mirrors "name.split('.').pop()": no dot means the whole name is the extension
    return (filename or "").rsplit(".", 1)[-1]


def _random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(length))


def attachment_blob_name(filename: Optional[str], now_ms: Optional[int] = None) -> str:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{now_ms}_{_random_suffix()}.{_extension(filename)}"


def background_blob_name(filename: Optional[str], now_ms: Optional[int] = None) -> str:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"bg_{now_ms}.{_extension(filename)}"


# ---------------- signed links ----------------

def sign_blob_token(name: str, ttl_seconds: int = SIGNED_URL_TTL_SECONDS, now: Optional[int] = None) -> str:
    now = now if now is not None else int(time.time())
    body = json.dumps({"name": name, "exp": now + ttl_seconds}, separators=(",", ":"), ensure_ascii=False)
    sig = hmac.new(SECRET_KEY.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"{body}.{sig}"


def verify_blob_token(token: str, name: str, now: Optional[int] = None) -> dict:
    token = (token or "").strip()
    if not token or "." not in token:
        raise HTTPException(status_code=403, detail="Invalid file token")
    body, sig = token.rsplit(".", 1)
    expected = hmac.new(SECRET_KEY.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, sig):
        raise HTTPException(status_code=403, detail="Invalid file token")
    payload = json.loads(body)
    if payload.get("name") != name:
        raise HTTPException(status_code=403, detail="Invalid file token")
    now = now if now is not None else int(time.time())
    if int(payload.get("exp") or 0) <= now:
        raise HTTPException(status_code=403, detail="File link expired")
    return payload


def signed_url(name: str, ttl_seconds: int = SIGNED_URL_TTL_SECONDS) -> str:
    token = sign_blob_token(name, ttl_seconds)
    return f"/files/{quote(name)}?token={quote(token, safe='')}"
