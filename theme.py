"""Colour helpers and palettes for the room theme."""
import re
from typing import Optional

FALLBACK_RGB = (34, 58, 86)
_HEX6 = re.compile(r"^[0-9a-fA-F]{6}$")

DEFAULT_NAME_COLOR = "#ebef00"
DEFAULT_MESSAGE_BACKGROUND = "#003a21"

NAME_COLOR_PRESETS = [
    {"color": "#FF0000", "name": "Красный"},
    {"color": "#FF7F00", "name": "Оранжевый"},
    {"color": "#FFFF00", "name": "Жёлтый"},
    {"color": "#00FF00", "name": "Зелёный"},
    {"color": "#00FFFF", "name": "Голубой"},
    {"color": "#0000FF", "name": "Синий"},
    {"color": "#8B00FF", "name": "Фиолетовый"},
    {"color": "#FF1493", "name": "Розовый"},
    {"color": "#FFFFFF", "name": "Белый"},
    {"color": "#ebef00", "name": "Лимонный"},
]

MESSAGE_BACKGROUND_PRESETS = [
    {"color": "#003a21", "name": "Тёмно-зелёный"},
    {"color": "#1a1a2e", "name": "Тёмно-синий"},
    {"color": "#2d1b2d", "name": "Пурпурный"},
    {"color": "#2d2d1b", "name": "Оливковый"},
    {"color": "#1b2d2d", "name": "Бирюзовый"},
    {"color": "#2d1b1b", "name": "Бордовый"},
    {"color": "#1b1b2d", "name": "Индиго"},
    {"color": "#2d2d2d", "name": "Серый"},
    {"color": "#0f2027", "name": "Графитовый"},
    {"color": "#1a0a2e", "name": "Фиолетовый"},
]


def hex_to_rgba(hex_color: Optional[str], alpha: float = 0.7) -> str:
    """Convert "#abc" / "#aabbcc" to a CSS rgba() string.

    Anything that is not a 3 or 6 digit hex colour falls back to a muted blue.
    """
    r, g, b = FALLBACK_RGB
    if isinstance(hex_color, str):
        h = hex_color.strip()
        if h.startswith("#"):
            h = h[1:]
        if len(h) == 3:
            h = "".join(c * 2 for c in h)
        if _HEX6.match(h):
            r, g, b = int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    return f"rgba({r}, {g}, {b}, {alpha})"
