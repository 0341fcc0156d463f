import re

import pytest
from fastapi import HTTPException

from presence import heartbeat, load_stats, prune, summary
from schemas import PresenceRecord, Stats
from storage import (
    attachment_blob_name,
    background_blob_name,
    sign_blob_token,
    verify_blob_token,
)
from theme import hex_to_rgba


def test_blob_names() -> None:
    assert re.fullmatch(r"1700000000000_[a-z0-9]{6}\.mp4", attachment_blob_name("clip.final.mp4", 1700000000000))
    assert background_blob_name("wall.png", 5) == "bg_5.png"
    # no dot: the whole name becomes the extension
    assert background_blob_name("README", 5) == "bg_5.README"


def test_token_roundtrip_and_expiry() -> None:
    token = sign_blob_token("a.png", ttl_seconds=60, now=1000)

    assert verify_blob_token(token, "a.png", now=1059)["name"] == "a.png"
    with pytest.raises(HTTPException) as exc:
        verify_blob_token(token, "a.png", now=1060)
    assert exc.value.detail == "File link expired"


@pytest.mark.parametrize("token", ["", "nodot", '{"name":"a.png","exp":99999999999}.deadbeef'])
def test_token_rejects_forgeries(token) -> None:
    with pytest.raises(HTTPException) as exc:
        verify_blob_token(token, "a.png")
    assert exc.value.status_code == 403


def test_heartbeat_updates_existing_record() -> None:
    stats = Stats(views=1, online_users=[PresenceRecord(id="u", last_seen=1)])

    stats = heartbeat(stats, "u", now=5000, window_seconds=10)

    assert stats.views == 1
    assert stats.online_users == [PresenceRecord(id="u", last_seen=5000)]


def test_prune_window_is_strict() -> None:
    stats = Stats(online_users=[PresenceRecord(id="a", last_seen=0), PresenceRecord(id="b", last_seen=1)])

    prune(stats, now=10_000, window_seconds=10)

    assert [u.id for u in stats.online_users] == ["b"]


def test_load_stats_accepts_stored_document() -> None:
    stats = load_stats({"views": 7, "onlineUsers": [{"id": "x", "lastSeen": 3}]})

    assert summary(stats) == {"views": 7, "onlineCount": 1}
    assert summary(load_stats(None)) == {"views": 0, "onlineCount": 0}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("#1a1a1a", "rgba(26, 26, 26, 0.5)"),
        ("fff", "rgba(255, 255, 255, 0.5)"),
        (" #ABC ", "rgba(170, 187, 204, 0.5)"),
        ("#12345", "rgba(34, 58, 86, 0.5)"),
        ("##abcdef", "rgba(34, 58, 86, 0.5)"),
        (None, "rgba(34, 58, 86, 0.5)"),
    ],
)
def test_hex_to_rgba(value, expected) -> None:
    assert hex_to_rgba(value, 0.5) == expected
