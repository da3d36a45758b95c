"""quotereel.common — shared utilities for reel rendering.

Contains: color parsing, path variable resolution, font loading and
text measurement.
"""

import logging
import re
from functools import lru_cache
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)


# ── Font paths ─────────────────────────────────────────────────────
# Quote text is set in a serif face (Georgia when installed, DejaVu Serif
# or Liberation Serif otherwise). The watermark uses a sans face.
# Keys are (bold, italic).

_FONT_DIRS = [
    Path.home() / ".local/share/fonts",
    Path("/usr/share/fonts/truetype/dejavu"),
    Path("/usr/share/fonts/truetype/liberation"),
]

SERIF_FONTS = {
    (False, False): ["Georgia.ttf", "DejaVuSerif.ttf", "LiberationSerif-Regular.ttf"],
    (True, False): ["Georgia Bold.ttf", "DejaVuSerif-Bold.ttf", "LiberationSerif-Bold.ttf"],
    (False, True): ["Georgia Italic.ttf", "DejaVuSerif-Italic.ttf", "LiberationSerif-Italic.ttf"],
    (True, True): [
        "Georgia Bold Italic.ttf", "DejaVuSerif-BoldItalic.ttf", "LiberationSerif-BoldItalic.ttf",
    ],
}

SANS_FONTS = {
    (False, False): ["DejaVuSans.ttf", "LiberationSans-Regular.ttf"],
    (True, False): ["DejaVuSans-Bold.ttf", "LiberationSans-Bold.ttf"],
}


# ── Color utilities ────────────────────────────────────────────────

def parse_hex_color(hex_str: str) -> tuple[int, int, int]:
    """Convert '#RRGGBB', 'RRGGBB' or shorthand '#RGB' to an (R, G, B) tuple."""
    hex_str = hex_str.lstrip("#")
    if len(hex_str) == 3:
        hex_str = "".join(c * 2 for c in hex_str)
    if len(hex_str) != 6 or not all(c in "0123456789abcdefABCDEF" for c in hex_str):
        raise ValueError(f"Invalid hex color: '#{hex_str}'")
    return (int(hex_str[0:2], 16), int(hex_str[2:4], 16), int(hex_str[4:6], 16))


def with_alpha(rgb: tuple[int, int, int], alpha: float) -> tuple[int, int, int, int]:
    """Attach a 0..1 opacity to an RGB tuple as an 8-bit alpha channel."""
    return (*rgb, max(0, min(255, round(alpha * 255))))


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return paths[key]
    return re.sub(r"\$\{(\w+)\}", _replace, text)


# ── Font loading ───────────────────────────────────────────────────

def _find_font(names: list[str]) -> Path | None:
    for name in names:
        for font_dir in _FONT_DIRS:
            candidate = font_dir / name
            if candidate.exists():
                return candidate
    return None


@lru_cache(maxsize=64)
def load_font(
    size: int,
    bold: bool = False,
    italic: bool = False,
    family: str = "serif",
) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load the quote (serif) or watermark (sans) face at the given size.

    Falls back to the regular weight of the family when the requested
    variant is not installed, then to Pillow's bundled default font,
    which is scalable on Pillow >= 10.1.
    """
    size = max(1, int(size))
    table = SERIF_FONTS if family == "serif" else SANS_FONTS
    candidates = table.get((bold, italic), []) + table[(False, False)]
    font_path = _find_font(candidates)
    if font_path is not None:
        try:
            return ImageFont.truetype(str(font_path), size=size)
        except OSError as e:
            logger.warning("Could not load font %s (%s), using default", font_path, e)
    # Last resort: Pillow default font.
    return ImageFont.load_default(size=size)


# ── Text measurement ───────────────────────────────────────────────

_MEASURE_DRAW = ImageDraw.Draw(Image.new("RGB", (1, 1)))


def text_width(text: str, font) -> float:
    """Rendered advance width of ``text`` in pixels for ``font``."""
    return _MEASURE_DRAW.textlength(text, font=font)


def make_measure(font):
    """Bind a font into a ``measure(text) -> width`` function for word wrap."""
    def measure(text: str) -> float:
        return text_width(text, font)
    return measure
