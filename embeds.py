"""
Inline embed detection for message text

A message whose whole text is one URL is shown inline: known video hosts get
their player iframe, direct media links get a native player, anything else is
framed as-is. A URL wrapped in quotes is only ever shown as a link.
"""
import re
from dataclasses import dataclass, asdict
from typing import Optional
from urllib.parse import quote

HLS_MIME = "application/vnd.apple.mpegurl"

QUOTED_URL = re.compile(r"[\"']((https?://[^\"']+))[\"']", re.I)
BARE_URL = re.compile(r"^(https?://\S+)$", re.I)

YOUTUBE = re.compile(r"youtube\.com|youtu\.be", re.I)
YOUTUBE_WATCH = re.compile(r"[?&]v=([^&]+)")
YOUTUBE_SHORT = re.compile(r"youtu\.be/([^?&]+)")
YOUTUBE_EMBED = re.compile(r"youtube\.com/embed/([^?&]+)")
VIMEO = re.compile(r"vimeo\.com/(\d+)", re.I)
TIKTOK = re.compile(r"tiktok\.com.*video/(\d+)", re.I)
TWITCH = re.compile(r"twitch\.tv/([^/?#]+)", re.I)
DAILYMOTION = re.compile(r"dailymotion\.com.*video/([^_]+)", re.I)
SOUNDCLOUD = re.compile(r"soundcloud\.com", re.I)


def _ext_pattern(exts: str) -> "re.Pattern[str]":
    return re.compile(r"\.(" + exts + r")(\?.*)?$", re.I)


VIDEO_FILE = _ext_pattern(
    "mp4|webm|ogg|ogv|mov|avi|mkv|flv|wmv|m4v|3gp|mpg|mpeg|ts|m2ts|mts|m3u8|mxf"
)
HLS_FILE = _ext_pattern("m3u8")
AUDIO_FILE = _ext_pattern(
    "mp3|wav|m4a|ogg|oga|aac|flac|wma|aiff|aif|aifc|alac|ape|opus|amr|mid|midi|ra|rm|wv|"
    "tta|tak|mka|dts|ac3|eac3|mlp|pcm|au|snd|m4b|m4p|3gp|aa|aax"
)
IMAGE_FILE = _ext_pattern(
    "jpg|jpeg|png|gif|webp|bmp|svg|ico|tiff|tif|psd|ai|eps|raw|cr2|nef|orf|sr2|jfif|jpe|"
    "heic|heif|avif|apng"
)
DOCUMENT_FILE = _ext_pattern("txt|pdf|doc|docx")

SOUNDCLOUD_PLAYER = (
    "https://w.soundcloud.com/player/?url={url}&color=%23ff5500&auto_play=false"
    "&hide_related=false&show_comments=true&show_user=true&show_reposts=false&show_teaser=true"
)


@dataclass
class Embed:
    kind: str
    url: str
    src: str
    height: Optional[int] = None
    mime: Optional[str] = None
    label: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _youtube(url: str) -> Optional[str]:
    src = None
    m = YOUTUBE_WATCH.search(url)
    if m:
        src = f"https://www.youtube.com/embed/{m.group(1)}"
    m = YOUTUBE_SHORT.search(url)
    if m:
        src = f"https://www.youtube.com/embed/{m.group(1)}"
    if YOUTUBE_EMBED.search(url):
        src = url
    return src


def classify_url(text: Optional[str], parent_host: Optional[str] = None) -> Optional[Embed]:
    """Return how a message text should be embedded, or None for plain text."""
    if not text:
        return None

    m = QUOTED_URL.search(text)
    if m:
        return Embed(kind="link", url=m.group(1), src=m.group(1), label=text)

    m = BARE_URL.match(text)
    if not m:
        return None
    url = m.group(1)

    if YOUTUBE.search(url):
        src = _youtube(url)
        if src:
            return Embed(kind="youtube", url=url, src=src, height=300)

    m = VIMEO.search(url)
    if m:
        return Embed(kind="vimeo", url=url, src=f"https://player.vimeo.com/video/{m.group(1)}", height=300)

    m = TIKTOK.search(url)
    if m:
        return Embed(kind="tiktok", url=url, src=f"https://www.tiktok.com/embed/v2/{m.group(1)}", height=500)

    m = TWITCH.search(url)
    if m:
        src = f"https://player.twitch.tv/?channel={m.group(1)}&parent={parent_host or 'localhost'}"
        return Embed(kind="twitch", url=url, src=src, height=300)

    m = DAILYMOTION.search(url)
    if m:
        return Embed(
            kind="dailymotion", url=url, src=f"https://www.dailymotion.com/embed/video/{m.group(1)}", height=300
        )

    if SOUNDCLOUD.search(url):
        return Embed(kind="soundcloud", url=url, src=SOUNDCLOUD_PLAYER.format(url=quote(url, safe="")), height=166)

    # ogg and 3gp are listed as both video and audio; video wins
    if VIDEO_FILE.search(url):
        return Embed(kind="video", url=url, src=url, mime=HLS_MIME if HLS_FILE.search(url) else None)
    if AUDIO_FILE.search(url):
        return Embed(kind="audio", url=url, src=url)
    if IMAGE_FILE.search(url):
        return Embed(kind="image", url=url, src=url)
    if DOCUMENT_FILE.search(url):
        return Embed(kind="document", url=url, src=url, height=300)

    return Embed(kind="iframe", url=url, src=url, height=300)
