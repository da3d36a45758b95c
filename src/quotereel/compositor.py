"""Frame compositor — renders one reel frame as an RGB numpy array.

Frame composition, bottom to top:
  1. Cleared (black) surface.
  2. Background: the current image cover-fit to the frame, or the layers
     the transition engine returns while a transition window is active.
  3. Gradient overlay: translucent black, heavier at the top and bottom,
     so the text stays legible on any image.
  4. Quote text, word-wrapped and centred on its anchor (~45% of the
     height by default), with a soft drop shadow.
  5. Author line "— {author}" below the quote (~65% of the height),
     slightly translucent.
  6. Watermark pill in the bottom-right corner (~95% of the height).

Layers 3-6 do not change from frame to frame, so they are rendered once
per RenderContext into an RGBA overlay and pasted over each background.

All sizes are fractions of the frame width/height, so the same context
renders identically (up to scale) at preview and at 4K resolution.
"""

from collections import OrderedDict
from dataclasses import dataclass, field, replace

import numpy as np
from PIL import Image, ImageDraw, ImageFilter

from .collection import decode_image
from .common import load_font, make_measure, with_alpha
from .geometry import Placement, cover_fit
from .settings import Quote, ReelSettings, TextSettings, TransitionKind
from .transitions import get_transition
from .typography import (
    AUTHOR_FONT_FRAC,
    AUTHOR_GAP_FRAC,
    font_size_for,
    line_height_for,
    line_positions,
    max_text_width,
    text_anchor,
    wrap_text,
)


# ── Constants ────────────────────────────────────────────────────

# Gradient overlay: (position along the height, black opacity).
GRADIENT_STOPS = ((0.0, 0.3), (0.4, 0.1), (0.6, 0.1), (1.0, 0.4))

# Shadow and watermark sizes are defined at a 1080px-wide reference frame
# and scale linearly with the frame width.
REF_W = 1080
_REF_SHADOW_OFFSET = 2
_REF_SHADOW_BLUR = 5          # gaussian radius
SHADOW_ALPHA = 0.5
AUTHOR_ALPHA = 0.8

WATERMARK_LOGO_FRAC = 0.045     # logo circle diameter, of width
WATERMARK_FONT_FRAC = 0.022     # label font size, of width
WATERMARK_PAD_X_FRAC = 0.03     # right margin, of width
WATERMARK_PAD_Y_FRAC = 0.025    # bottom margin, of height
WATERMARK_PILL_ALPHA = 0.4
WATERMARK_LOGO_ALPHA = 0.8
WATERMARK_TEXT_ALPHA = 0.95

# Decoded + cover-fitted backgrounds kept in memory. A frame needs at most
# the current and the next image, and frames visit images in order.
FITTED_CACHE_SIZE = 3

_PIL_ANCHORS = {"left": "lm", "center": "mm", "right": "rm"}


# ── Render context ───────────────────────────────────────────────


@dataclass(frozen=True)
class RenderContext:
    """Everything the compositor needs to know, fixed for a whole render."""

    width: int
    height: int
    quote: Quote
    text: TextSettings = field(default_factory=TextSettings)
    transition: TransitionKind = TransitionKind.DEFAULT

    @classmethod
    def for_settings(
        cls,
        settings: ReelSettings,
        quote: Quote,
        text: TextSettings | None = None,
    ) -> "RenderContext":
        """Context at the output resolution of the settings' quality profile."""
        return cls(
            settings.quality.width, settings.quality.height, quote,
            text or TextSettings(), settings.transition,
        )

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def scaled(self, width: int) -> "RenderContext":
        """Same context at another width (preview), keeping the aspect ratio."""
        height = max(1, round(width * self.height / self.width))
        return replace(self, width=width, height=height)


# ── Overlay rendering ────────────────────────────────────────────


def _sscale(ref_val: float, width: int) -> float:
    return ref_val * width / REF_W


def render_gradient(width: int, height: int) -> Image.Image:
    """Vertical black gradient as an RGBA image."""
    ys = np.linspace(0.0, 1.0, height, dtype=np.float32)
    positions = [p for p, _ in GRADIENT_STOPS]
    opacities = [a for _, a in GRADIENT_STOPS]
    alpha = np.interp(ys, positions, opacities) * 255.0
    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[:, :, 3] = np.round(alpha).astype(np.uint8)[:, None]
    return Image.fromarray(rgba)


def _draw_text_lines(size, lines, ys, x, font, anchor, fill) -> Image.Image:
    layer = Image.new("RGBA", size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    for line, y in zip(lines, ys):
        draw.text((x, y), line, font=font, fill=fill, anchor=anchor)
    return layer


def _with_shadow(base: Image.Image, lines, ys, x, font, anchor, fill, shadow: bool) -> Image.Image:
    """Composite text lines (and their blurred drop shadow) onto ``base``."""
    width = base.width
    if shadow:
        offset = max(1, round(_sscale(_REF_SHADOW_OFFSET, width)))
        shadow_layer = _draw_text_lines(
            base.size, lines, [y + offset for y in ys], x + offset, font, anchor,
            with_alpha((0, 0, 0), SHADOW_ALPHA),
        )
        blur = _sscale(_REF_SHADOW_BLUR, width)
        if blur > 0:
            shadow_layer = shadow_layer.filter(ImageFilter.GaussianBlur(blur))
        base = Image.alpha_composite(base, shadow_layer)
    text_layer = _draw_text_lines(base.size, lines, ys, x, font, anchor, fill)
    return Image.alpha_composite(base, text_layer)


def _underline_x(x: float, width: float, alignment: str) -> float:
    if alignment == "center":
        return x - width / 2
    if alignment == "right":
        return x - width
    return x


def render_quote(base: Image.Image, ctx: RenderContext) -> Image.Image:
    """Draw the wrapped quote, optional underline and the author line."""
    text = ctx.text
    w, h = ctx.size
    quote_text = ctx.quote.text.strip()

    font_size = font_size_for(w, text.font_scale)
    font = load_font(font_size, bold=text.bold, italic=text.italic)
    measure = make_measure(font)
    line_height = line_height_for(font_size)
    wrap_width = max_text_width(w)

    lines = wrap_text(quote_text, wrap_width, measure)
    x, anchor_y = text_anchor(w, h, text.alignment, text.position, text.offset_x, text.offset_y)
    ys = line_positions(len(lines), anchor_y, line_height)
    anchor = _PIL_ANCHORS[text.alignment]

    base = _with_shadow(base, lines, ys, x, font, anchor, (*text.rgb, 255), text.shadow)

    if text.underline and lines:
        layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        stroke = max(2, round(font_size * 0.05))
        uy = anchor_y + len(lines) * line_height / 2 + font_size * 0.2
        uw = min(wrap_width, measure(quote_text))
        ux = _underline_x(x, uw, text.alignment)
        draw.line([(ux, uy), (ux + uw, uy)], fill=(*text.rgb, 255), width=stroke)
        base = Image.alpha_composite(base, layer)

    author = ctx.quote.author.strip()
    if text.show_author and author:
        author_size = max(1, int(w * AUTHOR_FONT_FRAC * text.font_scale / 100.0))
        author_font = load_font(author_size, italic=True)
        # Keep the author clear of a long quote block.
        block_bottom = ys[-1] + line_height if ys else anchor_y
        author_y = max(anchor_y + h * AUTHOR_GAP_FRAC, block_bottom)
        fill = with_alpha(text.rgb, AUTHOR_ALPHA)
        base = _with_shadow(
            base, [f"— {author}"], [author_y], x, author_font, anchor, fill, text.shadow,
        )
    return base


def render_watermark(base: Image.Image, label: str) -> Image.Image:
    """Draw the brand pill (logo dot + label) in the bottom-right corner."""
    w, h = base.size
    logo_size = max(1, int(w * WATERMARK_LOGO_FRAC))
    font_size = max(1, int(w * WATERMARK_FONT_FRAC))
    font = load_font(font_size, bold=True, family="sans")
    pad_x = w * WATERMARK_PAD_X_FRAC
    pad_y = h * WATERMARK_PAD_Y_FRAC

    pill_pad = logo_size * 0.3
    pill_h = logo_size + pill_pad * 2
    label_w = make_measure(font)(label) + font_size * 0.5
    pill_w = logo_size + label_w + pill_pad * 3
    pill_x = w - pad_x - pill_w
    pill_y = h - pad_y - pill_h
    mid_y = pill_y + pill_h / 2

    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    draw.rounded_rectangle(
        [(pill_x, pill_y), (pill_x + pill_w, pill_y + pill_h)],
        radius=int(pill_h / 2),
        fill=with_alpha((0, 0, 0), WATERMARK_PILL_ALPHA),
    )
    base = Image.alpha_composite(base, layer)

    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    logo_x = pill_x + pill_pad
    draw.ellipse(
        [(logo_x, mid_y - logo_size / 2), (logo_x + logo_size, mid_y + logo_size / 2)],
        fill=with_alpha((255, 255, 255), WATERMARK_LOGO_ALPHA),
    )
    draw.text(
        (pill_x + pill_pad * 2 + logo_size, mid_y), label, font=font,
        fill=with_alpha((255, 255, 255), WATERMARK_TEXT_ALPHA), anchor="lm",
    )
    return Image.alpha_composite(base, layer)


def render_overlay(ctx: RenderContext) -> Image.Image:
    """Render the static RGBA overlay: gradient, quote, author, watermark.

    The gradient and text are drawn only when the quote is shown and
    non-empty; the watermark is always drawn unless its label is empty.
    """
    overlay = Image.new("RGBA", ctx.size, (0, 0, 0, 0))
    if ctx.text.show_quote and ctx.quote.text.strip():
        overlay = Image.alpha_composite(overlay, render_gradient(*ctx.size))
        overlay = render_quote(overlay, ctx)
    if ctx.text.watermark:
        overlay = render_watermark(overlay, ctx.text.watermark)
    return overlay


# ── Background layers ────────────────────────────────────────────


def draw_image(canvas: Image.Image, img: Image.Image, placement: Placement, alpha: float = 1.0) -> None:
    """Draw ``img`` onto ``canvas`` at ``placement`` with source-over opacity.

    ``img`` is resized when the placement size differs from its own size
    (zoom). Parts outside the canvas are clipped.
    """
    if alpha <= 0:
        return
    size = (max(1, round(placement.w)), max(1, round(placement.h)))
    if img.size != size:
        img = img.resize(size, Image.BILINEAR)
    xy = (round(placement.x), round(placement.y))
    if alpha >= 1:
        canvas.paste(img, xy)
    else:
        mask = Image.new("L", img.size, round(alpha * 255))
        canvas.paste(img, xy, mask)


# ── Compositor ───────────────────────────────────────────────────


class FrameCompositor:
    """Renders frames for one RenderContext over a fixed image sequence.

    Args:
        ctx: Render context (frame size, quote, styling, transition kind).
        images: Sequence of ImageSource handles, indexed by image_index.
    """

    def __init__(self, ctx: RenderContext, images):
        self.ctx = ctx
        self.images = tuple(images)
        self.transition = get_transition(ctx.transition)
        self._overlay = None
        self._fitted = OrderedDict()

    @property
    def overlay(self) -> Image.Image:
        if self._overlay is None:
            self._overlay = render_overlay(self.ctx)
        return self._overlay

    def fitted(self, index: int) -> tuple[Image.Image, Placement]:
        """Decode image ``index`` and resample it to its cover-fit size.

        Raises:
            ImageDecodeFailure: The image cannot be decoded.
        """
        if index in self._fitted:
            self._fitted.move_to_end(index)
            return self._fitted[index]
        source = self.images[index]
        img = decode_image(source, index)
        placement = cover_fit(img.width, img.height, *self.ctx.size)
        size = (max(1, round(placement.w)), max(1, round(placement.h)))
        entry = (img.resize(size, Image.LANCZOS), placement)
        self._fitted[index] = entry
        if len(self._fitted) > FITTED_CACHE_SIZE:
            self._fitted.popitem(last=False)
        return entry

    def render_background(
        self,
        image_index: int,
        progress: float = 1.0,
        next_index: int | None = None,
    ) -> Image.Image:
        """Steps 1-2: clear surface, then draw the image or transition layers."""
        canvas = Image.new("RGB", self.ctx.size, (0, 0, 0))
        out_img, out_place = self.fitted(image_index)

        active = (
            self.transition.blends
            and next_index is not None
            and progress < 1.0
        )
        if not active:
            draw_image(canvas, out_img, out_place)
            return canvas

        in_img, in_place = self.fitted(next_index)
        layers = self.transition.blend(out_place, in_place, progress, self.ctx.size)
        sources = {"outgoing": out_img, "incoming": in_img}
        for layer in layers:
            draw_image(canvas, sources[layer.role], layer.placement, layer.alpha)
        return canvas

    def render_image(
        self,
        image_index: int,
        progress: float = 1.0,
        next_index: int | None = None,
    ) -> Image.Image:
        canvas = self.render_background(image_index, progress, next_index)
        overlay = self.overlay
        canvas.paste(overlay, (0, 0), overlay)
        return canvas

    def render(
        self,
        image_index: int,
        progress: float = 1.0,
        next_index: int | None = None,
    ) -> np.ndarray:
        """Render one frame.

        Args:
            image_index: Image whose display slot the frame belongs to.
            progress: Transition progress in [0, 1]; 1 means no transition.
            next_index: Incoming image during a transition window.

        Returns:
            numpy array of shape (height, width, 3), dtype uint8 (RGB).
        """
        return np.array(self.render_image(image_index, progress, next_index))
