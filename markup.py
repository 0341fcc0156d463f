"""
Message markup: spoiler blocks, inline file links, attachment and reply previews

    [spoiler:Title]hidden text[/spoiler]
    [file:photo.png]

A file link only resolves when it names the message's own attachment;
otherwise the tag stays in the text as written.
"""
import re
from typing import List, Optional

from embeds import HLS_FILE, HLS_MIME

SPOILER = re.compile(r"\[spoiler:([^\]]*)\]([\s\S]*?)\[/spoiler\]")
FILE_LINK = re.compile(r"\[file:([^\]]+)\]")

DEFAULT_SPOILER_TITLE = "Спойлер"


def file_tag(file_name: str) -> str:
    return f"[file:{file_name}]"


def _split_file_links(text: str, file_name: Optional[str], has_file: bool) -> List[dict]:
    segments = []
    last = 0
    for m in FILE_LINK.finditer(text):
        if m.start() > last:
            segments.append({"type": "text", "text": text[last:m.start()]})
        if has_file and m.group(1) == file_name:
            segments.append({"type": "file", "name": file_name})
        else:
            segments.append({"type": "text", "text": m.group(0)})
        last = m.end()
    if last < len(text):
        segments.append({"type": "text", "text": text[last:]})
    return segments


def parse_markup(text: str, file_name: Optional[str] = None, has_file: bool = True) -> List[dict]:
    """Split message text into ordered text/spoiler/file segments."""
    if not text:
        return []

    segments: List[dict] = []
    last = 0
    for m in SPOILER.finditer(text):
        if m.start() > last:
            segments.extend(_split_file_links(text[last:m.start()], file_name, has_file))
        body = m.group(2)
        link = FILE_LINK.search(body)
        segments.append({
            "type": "spoiler",
            "title": m.group(1) or DEFAULT_SPOILER_TITLE,
            "text": FILE_LINK.sub("", body).strip(),
            "file": bool(has_file and link and link.group(1) == file_name),
        })
        last = m.end()
    if last < len(text):
        segments.extend(_split_file_links(text[last:], file_name, has_file))
    return segments


def file_preview_kind(file_type: Optional[str], file_url: Optional[str] = None) -> str:
    file_type = file_type or ""
    if file_type.startswith("image/"):
        return "image"
    if file_type.startswith("video/") or file_type == HLS_MIME or (file_url and HLS_FILE.search(file_url)):
        return "video"
    if file_type.startswith("audio/"):
        return "audio"
    if file_type.startswith("text/"):
        return "text"
    return "download"


def attachment_preview(message: dict) -> Optional[dict]:
    """Describe the standalone attachment, unless the text already links it."""
    file_url = message.get("fileUrl")
    if not file_url:
        return None
    file_name = message.get("fileName")
    if file_name and file_tag(file_name) in (message.get("text") or ""):
        return None
    kind = file_preview_kind(message.get("fileType"), file_url)
    mime = message.get("fileType")
    if kind == "video" and (mime == HLS_MIME or HLS_FILE.search(file_url)):
        mime = HLS_MIME
    return {"kind": kind, "url": file_url, "mime": mime, "name": file_name}


REPLY_PLACEHOLDERS = {
    "image": "Изображение",
    "video": "Видео",
    "audio": "Аудио",
}


def reply_preview(messages: List[dict], reply_to: Optional[str], max_len: int = 80) -> Optional[dict]:
    if not reply_to:
        return None
    target = next((m for m in messages if m.get("id") == reply_to), None)
    if target is None:
        return None

    media = None
    if target.get("fileUrl"):
        file_type = target.get("fileType") or ""
        media = next((k for k in REPLY_PLACEHOLDERS if file_type.startswith(k + "/")), "file")

    preview = target.get("text") or ""
    if len(preview) > max_len:
        preview = preview[:max_len] + "…"
    if not preview:
        preview = REPLY_PLACEHOLDERS.get(media, "Файл")

    return {
        "id": reply_to,
        "username": target.get("username"),
        "text": preview,
        "media": media,
        "thumbnail": target.get("fileUrl") if media == "image" else None,
    }
