"""
Key-value table for the chat room

Every document lives in one MongoDB collection as {_id: key, value: <json>}.
Messages use the "msg_<id>" key prefix; settings and stats are singletons.
"""
import logging
import os
import re
from typing import Any, Iterable, List, Optional

from pymongo import MongoClient

logger = logging.getLogger("chatroom.database")

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
KV_COLLECTION = os.getenv("KV_COLLECTION", "kv_store")

MESSAGE_PREFIX = "msg_"
SETTINGS_KEY = "chat_settings"
STATS_KEY = "chat_stats"

db = None

if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]


def _collection():
    if db is None:
        raise RuntimeError("Database not available")
    return db[KV_COLLECTION]


def message_key(message_id: str) -> str:
    return f"{MESSAGE_PREFIX}{message_id}"


def kv_get(key: str) -> Optional[Any]:
    doc = _collection().find_one({"_id": key})
    if doc is None:
        return None
    return doc.get("value")


def kv_set(key: str, value: Any) -> None:
    _collection().update_one({"_id": key}, {"$set": {"value": value}}, upsert=True)


def kv_mdel(keys: Iterable[str]) -> int:
    keys = list(keys)
    if not keys:
        return 0
    result = _collection().delete_many({"_id": {"$in": keys}})
    logger.debug("deleted %s of %s keys", result.deleted_count, len(keys))
    return result.deleted_count


def kv_get_by_prefix(prefix: str) -> List[Any]:
    docs = _collection().find({"_id": {"$regex": "^" + re.escape(prefix)}})
    return [d.get("value") for d in docs]
