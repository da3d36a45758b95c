"""Shared test fixtures for quotereel tests."""

import pytest
from PIL import Image

from quotereel.collection import ImageSource
from quotereel.encoders import EncoderBackend
from quotereel.errors import EncoderInitFailure, EncoderSubmitFailure
from quotereel.settings import QualityProfile

# Small portrait profile with a codec every ffmpeg build ships, so the
# encoder tests run in well under a second.
TINY_PROFILE = QualityProfile("tiny", 64, 112, 200_000, codec="libx264", container="mp4")

COLORS = [
    (200, 0, 0),
    (0, 0, 200),
    (0, 200, 0),
    (200, 200, 0),
    (0, 200, 200),
]


def solid_source(color, size=(32, 56), name="solid"):
    """ImageSource of one flat color. The default size has the frame's aspect."""
    return ImageSource.from_image(Image.new("RGB", size, color), name=name)


@pytest.fixture
def make_sources():
    """Factory: ``make_sources(n)`` returns n flat-color ImageSources."""
    def _make(n, size=(32, 56)):
        return [
            solid_source(COLORS[i % len(COLORS)], size, name=f"img{i}")
            for i in range(n)
        ]
    return _make


@pytest.fixture
def image_files(tmp_path):
    """Three small PNG files on disk, in display order."""
    paths = []
    for i, color in enumerate(COLORS[:3]):
        p = tmp_path / "photos" / f"photo{i}.png"
        p.parent.mkdir(exist_ok=True)
        Image.new("RGB", (48, 64), color).save(p)
        paths.append(p)
    return paths


class MemoryEncoder(EncoderBackend):
    """Encoder double that records frames instead of encoding them.

    Args:
        paced: Value of the ``paced`` attribute.
        fail_open: Profile names whose ``open()`` raises EncoderInitFailure.
        fail_at: Frame number (1-based) whose ``submit()`` raises.
        on_submit: Called with the running frame count after each submit.
    """

    name = "memory"

    def __init__(self, paced=False, fail_open=(), fail_at=None, on_submit=None):
        self.paced = paced
        self.fail_open = set(fail_open)
        self.fail_at = fail_at
        self.on_submit = on_submit
        self.frames = 0
        self.shapes = set()
        self.open_attempts = []
        self.profile = None
        self.path = None
        self.finalized = False
        self.aborted = False

    def open(self, path, profile, fps):
        self.open_attempts.append(profile.name)
        if profile.name in self.fail_open:
            raise EncoderInitFailure(f"cannot open {profile.name}")
        self.path = path
        self.profile = profile
        self.fps = fps

    def submit(self, frame):
        if self.fail_at is not None and self.frames + 1 == self.fail_at:
            raise EncoderSubmitFailure("encoder rejected frame")
        self.frames += 1
        self.shapes.add(frame.shape)
        if self.on_submit is not None:
            self.on_submit(self.frames)

    def finalize(self):
        self.finalized = True
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(b"reel")
        return self.path

    def abort(self):
        self.aborted = True


@pytest.fixture
def memory_encoder():
    return MemoryEncoder()
