"""Presence bookkeeping over the chat_stats document."""
import os
import time
from typing import Optional

from schemas import PresenceRecord, Stats

PRESENCE_WINDOW_SECONDS = float(os.getenv("PRESENCE_WINDOW_SECONDS", "10"))


def now_ms() -> int:
    return int(time.time() * 1000)


def prune(stats: Stats, now: int, window_seconds: float = PRESENCE_WINDOW_SECONDS) -> Stats:
    window_ms = window_seconds * 1000
    stats.online_users = [u for u in stats.online_users if now - u.last_seen < window_ms]
    return stats


def heartbeat(
    stats: Stats,
    user_id: str,
    now: int,
    is_new_visit: bool = False,
    leave: bool = False,
    window_seconds: float = PRESENCE_WINDOW_SECONDS,
) -> Stats:
    if is_new_visit:
        stats.views += 1

    if leave:
        stats.online_users = [u for u in stats.online_users if u.id != user_id]
    else:
        record = next((u for u in stats.online_users if u.id == user_id), None)
        if record is not None:
            record.last_seen = now
        else:
            stats.online_users.append(PresenceRecord(id=user_id, last_seen=now))

    return prune(stats, now, window_seconds)


def load_stats(doc: Optional[dict]) -> Stats:
    if not doc:
        return Stats()
    return Stats.model_validate(doc)


def summary(stats: Stats) -> dict:
    return {"views": stats.views, "onlineCount": len(stats.online_users)}
