"""Typography — word wrap and vertical placement of the quote text.

The wrap is a pure function of the text, a width budget and a ``measure``
callable, so the on-screen preview and the full-resolution encode wrap
identically: only the font (and therefore ``measure``) changes, and font
size is a fixed fraction of frame width.
"""

import math


# ── Proportions (fractions of the frame) ─────────────────────────

FONT_SIZE_FRAC = 0.045        # base quote font size, of frame width
AUTHOR_FONT_FRAC = 0.03       # author line font size, of frame width
LINE_HEIGHT_FACTOR = 1.5      # line height, of font size
MAX_TEXT_WIDTH_FRAC = 0.85    # wrap width, of frame width

ANCHOR_Y_FRAC = {"top": 0.25, "center": 0.45, "bottom": 0.70}
ANCHOR_X_FRAC = {"left": 0.08, "center": 0.5, "right": 0.92}

# The author line sits this far (of frame height) below the quote anchor,
# which places it at ~65% of the height for the default centered quote.
AUTHOR_GAP_FRAC = 0.20


def font_size_for(frame_width: int, font_scale: float = 100.0) -> int:
    """Quote font size in pixels for a frame width and a percent scale."""
    base = math.floor(frame_width * FONT_SIZE_FRAC)
    return max(1, math.floor(base * font_scale / 100.0))


def line_height_for(font_size: int) -> float:
    return font_size * LINE_HEIGHT_FACTOR


def max_text_width(frame_width: int) -> float:
    return frame_width * MAX_TEXT_WIDTH_FRAC


def wrap_text(text: str, max_width: float, measure) -> list[str]:
    """Greedy word wrap.

    Words are added to the current line while ``measure(line + word)``
    stays within ``max_width``; otherwise a new line starts. A single
    word wider than ``max_width`` occupies a line of its own rather than
    being dropped or split.

    Args:
        text: Text to wrap. Runs of whitespace collapse to one space.
        max_width: Width budget in the units ``measure`` returns.
        measure: Callable returning the rendered width of a string.

    Returns:
        List of lines; empty when ``text`` has no words.
    """
    words = text.split()
    lines = []
    line = ""
    for word in words:
        candidate = f"{line} {word}" if line else word
        if line and measure(candidate) > max_width:
            lines.append(line)
            line = word
        else:
            line = candidate
    if line:
        lines.append(line)
    return lines


def line_positions(n_lines: int, anchor_y: float, line_height: float) -> list[float]:
    """Y coordinate of each line so the block is centred on ``anchor_y``.

    The first line sits at ``anchor_y - n_lines * line_height / 2`` and
    each following line one ``line_height`` lower.
    """
    start_y = anchor_y - (n_lines * line_height) / 2
    return [start_y + i * line_height for i in range(n_lines)]


def text_anchor(
    frame_w: int,
    frame_h: int,
    alignment: str = "center",
    position: str = "center",
    offset_x: float = 0.0,
    offset_y: float = 0.0,
) -> tuple[float, float]:
    """Anchor point of the quote block, with percent offsets applied."""
    x = frame_w * ANCHOR_X_FRAC[alignment] + (offset_x / 100.0) * frame_w
    y = frame_h * ANCHOR_Y_FRAC[position] + (offset_y / 100.0) * frame_h
    return x, y
