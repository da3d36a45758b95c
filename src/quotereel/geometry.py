"""Placement geometry shared by the compositor and the transitions."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Placement:
    """Where an image is drawn on the frame, in (possibly fractional) pixels.

    x/y may be negative: a cover-fit image overflows the frame on one axis
    and is cropped by the frame edges.
    """

    x: float
    y: float
    w: float
    h: float

    def shifted(self, dx: float = 0.0, dy: float = 0.0) -> "Placement":
        return Placement(self.x + dx, self.y + dy, self.w, self.h)

    def scaled_about(self, cx: float, cy: float, scale: float) -> "Placement":
        """Scale the rectangle about the point (cx, cy)."""
        return Placement(
            cx + (self.x - cx) * scale,
            cy + (self.y - cy) * scale,
            self.w * scale,
            self.h * scale,
        )


def cover_fit(img_w: int, img_h: int, frame_w: int, frame_h: int) -> Placement:
    """Scale an image to fully cover the frame, preserving aspect ratio.

    The image is centred on both axes; the overflowing axis is cropped
    evenly on both sides.

    - image wider than the frame (aspect >): height = frame height,
      width = height * image aspect.
    - otherwise: width = frame width, height = width / image aspect.
    """
    img_aspect = img_w / img_h
    frame_aspect = frame_w / frame_h
    if img_aspect > frame_aspect:
        h = float(frame_h)
        w = h * img_aspect
    else:
        w = float(frame_w)
        h = w / img_aspect
    return Placement((frame_w - w) / 2, (frame_h - h) / 2, w, h)
