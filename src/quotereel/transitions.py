"""Transition engine — how outgoing and incoming images share a frame.

Each transition kind is one class with a ``blend`` method. Given the
cover-fit placements of the outgoing and incoming images and a progress
value in [0, 1] (0 = window start, 1 = fully switched), ``blend`` returns
the ordered layers the compositor should draw, bottom first.

Transition kinds:
  - fade: outgoing fades out (alpha 1-p), incoming fades in on top (alpha p).
  - slide: outgoing moves left by p*W, incoming follows from the right,
    always edge-to-edge with the outgoing image.
  - zoom: outgoing grows up to 10% about the frame centre while fading
    out. The incoming image is not drawn; it appears when its own slot
    starts.
  - cut / default: no blending, the current image is drawn alone.

The transition window is the trailing slice of each image's slot: 30% of
the per-image duration, clamped to [0.1s, 0.5s].
"""

from dataclasses import dataclass

from .geometry import Placement
from .settings import TransitionKind, parse_transition


# ── Timing ───────────────────────────────────────────────────────

TRANSITION_FRACTION = 0.3
MIN_TRANSITION_SECONDS = 0.1
MAX_TRANSITION_SECONDS = 0.5

ZOOM_MAX_SCALE = 0.10


def transition_duration(seconds_per_image: float) -> float:
    """Length of the trailing transition window for one image slot."""
    return min(
        MAX_TRANSITION_SECONDS,
        max(MIN_TRANSITION_SECONDS, seconds_per_image * TRANSITION_FRACTION),
    )


# ── Layers ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Layer:
    """One image draw: which image, where, and at what opacity."""

    role: str              # "outgoing" or "incoming"
    placement: Placement
    alpha: float = 1.0


def _clamp01(p: float) -> float:
    return max(0.0, min(1.0, p))


# ── Transition kinds ─────────────────────────────────────────────


class Transition:
    """Base transition: draw the outgoing image alone (a hard cut)."""

    kind = TransitionKind.CUT
    blends = False

    def blend(
        self,
        outgoing: Placement,
        incoming: Placement | None,
        progress: float,
        frame_size: tuple[int, int],
    ) -> list[Layer]:
        return [Layer("outgoing", outgoing)]


class CutTransition(Transition):
    kind = TransitionKind.CUT


class DefaultTransition(Transition):
    kind = TransitionKind.DEFAULT


class FadeTransition(Transition):
    kind = TransitionKind.FADE
    blends = True

    def blend(self, outgoing, incoming, progress, frame_size):
        p = _clamp01(progress)
        if incoming is None:
            return [Layer("outgoing", outgoing)]
        return [
            Layer("outgoing", outgoing, 1.0 - p),
            Layer("incoming", incoming, p),
        ]


class SlideTransition(Transition):
    kind = TransitionKind.SLIDE
    blends = True

    def blend(self, outgoing, incoming, progress, frame_size):
        p = _clamp01(progress)
        if incoming is None:
            return [Layer("outgoing", outgoing)]
        frame_w = frame_size[0]
        offset = frame_w * p
        return [
            Layer("outgoing", outgoing.shifted(dx=-offset)),
            Layer("incoming", incoming.shifted(dx=frame_w - offset)),
        ]


class ZoomTransition(Transition):
    kind = TransitionKind.ZOOM
    blends = True

    def blend(self, outgoing, incoming, progress, frame_size):
        p = _clamp01(progress)
        frame_w, frame_h = frame_size
        scale = 1.0 + p * ZOOM_MAX_SCALE
        zoomed = outgoing.scaled_about(frame_w / 2, frame_h / 2, scale)
        return [Layer("outgoing", zoomed, 1.0 - p)]


# ── Registry ─────────────────────────────────────────────────────
# Maps transition kind → transition instance. Transitions are stateless.

TRANSITIONS = {
    TransitionKind.DEFAULT: DefaultTransition(),
    TransitionKind.FADE: FadeTransition(),
    TransitionKind.SLIDE: SlideTransition(),
    TransitionKind.ZOOM: ZoomTransition(),
    TransitionKind.CUT: CutTransition(),
}


def get_transition(kind) -> Transition:
    """Return the transition for a kind or kind name."""
    return TRANSITIONS[parse_transition(kind)]
