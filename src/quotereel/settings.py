"""Reel settings, quality profiles and text styling.

All settings objects are frozen dataclasses: a render never observes a
setting changing underneath it. Use ``dataclasses.replace`` to derive a
variant (e.g. a lower quality profile for an encoder fallback).
"""

from dataclasses import dataclass, field
from enum import Enum

from .common import parse_hex_color


# ── Constants ────────────────────────────────────────────────────

MIN_IMAGES = 2
MAX_IMAGES = 20
DEFAULT_FPS = 30

# Preset durations offered by the picker; any positive value is accepted.
DURATION_OPTIONS = (0.3, 0.4, 0.5, 0.8, 1, 2, 3, 4, 5)

VALID_ALIGNMENTS = {"left", "center", "right"}
VALID_POSITIONS = {"top", "center", "bottom"}


# ── Quote ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Quote:
    text: str
    author: str = ""


# ── Transition kinds ─────────────────────────────────────────────


class TransitionKind(str, Enum):
    DEFAULT = "default"
    FADE = "fade"
    SLIDE = "slide"
    ZOOM = "zoom"
    CUT = "cut"

    @property
    def blends(self) -> bool:
        """True when the kind draws anything during the transition window."""
        return self not in (TransitionKind.DEFAULT, TransitionKind.CUT)


# "none" is the name the picker used for a hard cut.
_TRANSITION_ALIASES = {"none": TransitionKind.CUT}


def parse_transition(value) -> TransitionKind:
    """Parse a transition name (case-insensitive, 'none' means cut)."""
    if isinstance(value, TransitionKind):
        return value
    name = str(value).strip().lower()
    if name in _TRANSITION_ALIASES:
        return _TRANSITION_ALIASES[name]
    try:
        return TransitionKind(name)
    except ValueError:
        valid = sorted(k.value for k in TransitionKind)
        raise ValueError(f"Unknown transition '{value}'. Valid: {valid}") from None


# ── Quality profiles ─────────────────────────────────────────────


@dataclass(frozen=True)
class QualityProfile:
    """A named pairing of output resolution, bitrate and codec."""

    name: str
    width: int
    height: int
    bitrate: int                  # bits per second
    codec: str = "libvpx-vp9"
    container: str = "webm"
    label: str = ""

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Quality profile '{self.name}': resolution must be positive, "
                f"got {self.width}x{self.height}"
            )
        if self.bitrate <= 0:
            raise ValueError(
                f"Quality profile '{self.name}': bitrate must be positive, got {self.bitrate}"
            )

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def extension(self) -> str:
        return self.container

    @property
    def mime_type(self) -> str:
        return f"video/{self.container}"


QUALITY_PROFILES = {
    "1080p": QualityProfile("1080p", 1080, 1920, 8_000_000, label="HD (1080p)"),
    "4k": QualityProfile("4k", 2160, 3840, 35_000_000, label="4K Ultra HD"),
}

# Next profile to try when the encoder cannot open the requested one.
PROFILE_FALLBACKS = {"4k": "1080p"}


def get_quality_profile(value) -> QualityProfile:
    """Look up a built-in profile by name, or pass a QualityProfile through."""
    if isinstance(value, QualityProfile):
        return value
    key = str(value).strip().lower()
    if key in ("hd", "1080"):
        key = "1080p"
    if key not in QUALITY_PROFILES:
        raise ValueError(
            f"Unknown quality '{value}'. Valid: {sorted(QUALITY_PROFILES)}"
        )
    return QUALITY_PROFILES[key]


def fallback_profile(profile: QualityProfile) -> QualityProfile | None:
    """Return the lower-resolution profile to retry with, if any."""
    name = PROFILE_FALLBACKS.get(profile.name)
    if name is None:
        return None
    lower = QUALITY_PROFILES[name]
    # Keep a custom codec/container on the way down.
    return QualityProfile(
        lower.name, lower.width, lower.height, lower.bitrate,
        codec=profile.codec, container=profile.container, label=lower.label,
    )


# ── Reel settings ────────────────────────────────────────────────


@dataclass(frozen=True)
class ReelSettings:
    seconds_per_image: float = 1.0
    transition: TransitionKind = TransitionKind.DEFAULT
    quality: QualityProfile = QUALITY_PROFILES["4k"]
    fps: int = DEFAULT_FPS

    def __post_init__(self):
        if not isinstance(self.seconds_per_image, (int, float)) or self.seconds_per_image <= 0:
            raise ValueError(
                f"seconds_per_image must be a positive number, got {self.seconds_per_image!r}"
            )
        if not isinstance(self.fps, int) or self.fps <= 0:
            raise ValueError(f"fps must be a positive integer, got {self.fps!r}")
        # Accept names for convenience; store the parsed values.
        object.__setattr__(self, "transition", parse_transition(self.transition))
        object.__setattr__(self, "quality", get_quality_profile(self.quality))

    def total_duration(self, image_count: int) -> float:
        return image_count * self.seconds_per_image


# ── Text settings ────────────────────────────────────────────────


@dataclass(frozen=True)
class TextSettings:
    """Quote styling. Offsets are percentages of the frame dimension."""

    show_quote: bool = True
    show_author: bool = True
    alignment: str = "center"
    position: str = "center"
    font_scale: float = 100.0
    color: str = "#ffffff"
    shadow: bool = True
    offset_x: float = 0.0
    offset_y: float = 0.0
    bold: bool = False
    italic: bool = False
    underline: bool = False
    watermark: str = "QuoteSwipe"
    rgb: tuple[int, int, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.alignment not in VALID_ALIGNMENTS:
            raise ValueError(
                f"Invalid alignment '{self.alignment}'. Valid: {sorted(VALID_ALIGNMENTS)}"
            )
        if self.position not in VALID_POSITIONS:
            raise ValueError(
                f"Invalid position '{self.position}'. Valid: {sorted(VALID_POSITIONS)}"
            )
        if self.font_scale <= 0:
            raise ValueError(f"font_scale must be > 0, got {self.font_scale!r}")
        for name in ("offset_x", "offset_y"):
            value = getattr(self, name)
            if not -50 <= value <= 50:
                raise ValueError(f"{name} must be within [-50, 50], got {value!r}")
        object.__setattr__(self, "rgb", parse_hex_color(self.color))
