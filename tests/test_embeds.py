import pytest

from embeds import HLS_MIME, classify_url


@pytest.mark.parametrize(
    "url, kind, src",
    [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=1", "youtube", "https://www.youtube.com/embed/dQw4w9WgXcQ"),
        ("https://youtu.be/dQw4w9WgXcQ?si=x", "youtube", "https://www.youtube.com/embed/dQw4w9WgXcQ"),
        ("https://www.youtube.com/embed/abc", "youtube", "https://www.youtube.com/embed/abc"),
        ("https://vimeo.com/76979871", "vimeo", "https://player.vimeo.com/video/76979871"),
        ("https://www.tiktok.com/@user/video/7106594312292453675", "tiktok", "https://www.tiktok.com/embed/v2/7106594312292453675"),
        ("https://www.dailymotion.com/video/x7tgad0_title", "dailymotion", "https://www.dailymotion.com/embed/video/x7tgad0"),
    ],
)
def test_video_hosts(url, kind, src) -> None:
    embed = classify_url(url)

    assert embed.kind == kind
    assert embed.src == src
    assert embed.url == url


def test_twitch_uses_parent_host() -> None:
    embed = classify_url("https://www.twitch.tv/somechannel", parent_host="chat.example.org")

    assert embed.kind == "twitch"
    assert embed.src == "https://player.twitch.tv/?channel=somechannel&parent=chat.example.org"


def test_soundcloud_player_encodes_url() -> None:
    embed = classify_url("https://soundcloud.com/artist/track")

    assert embed.kind == "soundcloud"
    assert embed.src.startswith("https://w.soundcloud.com/player/?url=https%3A%2F%2Fsoundcloud.com%2Fartist%2Ftrack&")
    assert embed.height == 166


def test_youtube_without_id_falls_through_to_iframe() -> None:
    embed = classify_url("https://www.youtube.com/feed/trending")
    assert embed.kind == "iframe"


@pytest.mark.parametrize(
    "url, kind",
    [
        ("https://cdn.example.com/clip.mp4", "video"),
        ("https://cdn.example.com/clip.ogg", "video"),
        ("https://cdn.example.com/song.mp3?dl=1", "audio"),
        ("https://cdn.example.com/pic.JPEG", "image"),
        ("https://cdn.example.com/paper.pdf", "document"),
        ("https://example.com/some/page", "iframe"),
    ],
)
def test_direct_files(url, kind) -> None:
    assert classify_url(url).kind == kind


def test_hls_stream_is_flagged() -> None:
    embed = classify_url("https://cdn.example.com/live/index.m3u8?token=1")

    assert embed.kind == "video"
    assert embed.mime == HLS_MIME


def test_quoted_url_is_a_plain_link() -> None:
    text = 'check "https://youtu.be/abc" out'

    embed = classify_url(text)

    assert embed.kind == "link"
    assert embed.url == "https://youtu.be/abc"
    assert embed.label == text


@pytest.mark.parametrize("text", ["", None, "hello", "see https://example.com now", "ftp://example.com/x"])
def test_non_urls_are_not_embedded(text) -> None:
    assert classify_url(text) is None
