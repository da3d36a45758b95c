"""Encoder backends — turn a stream of RGB frames into a video file.

The encoding pipeline is encoder-agnostic: it opens a backend, submits
frames strictly in order, then finalizes (or aborts) it. Two backends:

  - streaming: frames are piped into an ffmpeg subprocess as they are
    rendered (imageio-ffmpeg). Low memory. The pipeline paces frame
    submission to real time, so generation takes about as long as the
    reel plays.
  - batch: frames are buffered in memory, then encoded in one go at full
    speed through moviepy. No pacing, but memory grows with reel length
    and resolution.

Both write to the path passed to ``open()``. ``abort()`` stops the encoder
and deletes whatever partial file exists, so a failed or cancelled job
never leaves a usable-looking artifact behind.
"""

import logging
from pathlib import Path

import imageio_ffmpeg
import numpy as np
from moviepy import ImageSequenceClip

from .errors import EncoderInitFailure, EncoderSubmitFailure
from .settings import QualityProfile

logger = logging.getLogger(__name__)


def _codec_params(codec):
    """Return extra ffmpeg output params for the given codec name."""
    if codec == "libvpx-vp9":
        return ["-deadline", "realtime", "-cpu-used", "8", "-row-mt", "1"]
    if codec == "libx264":
        return ["-preset", "medium"]
    return []


def _remove_partial(path: Path | None) -> None:
    if path is not None and path.exists():
        path.unlink()
        logger.info("removed partial output %s", path)


class EncoderBackend:
    """Interface every encoder backend implements.

    Attributes:
        name: Registry name of the backend.
        paced: True when frames should be submitted at real-time rate.
    """

    name = "base"
    paced = False

    def open(self, path, profile: QualityProfile, fps: int) -> None:
        raise NotImplementedError

    def submit(self, frame: np.ndarray) -> None:
        raise NotImplementedError

    def finalize(self) -> Path:
        raise NotImplementedError

    def abort(self) -> None:
        raise NotImplementedError


def _check_frame(frame: np.ndarray, profile: QualityProfile) -> None:
    expected = (profile.height, profile.width, 3)
    if frame.shape != expected or frame.dtype != np.uint8:
        raise EncoderSubmitFailure(
            f"Frame has shape {frame.shape} {frame.dtype}, "
            f"encoder expects {expected} uint8"
        )


# ── Streaming backend ────────────────────────────────────────────


class StreamingEncoder(EncoderBackend):
    """Pipe frames to ffmpeg as they are produced."""

    name = "streaming"
    paced = True

    def __init__(self):
        self._writer = None
        self._path = None
        self._profile = None

    def open(self, path, profile, fps):
        self._path = Path(path)
        self._profile = profile
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            writer = imageio_ffmpeg.write_frames(
                str(self._path),
                profile.size,
                fps=fps,
                codec=profile.codec,
                bitrate=profile.bitrate,
                quality=None,
                pix_fmt_in="rgb24",
                pix_fmt_out="yuv420p",
                macro_block_size=1,
                output_params=_codec_params(profile.codec),
            )
            writer.send(None)  # starts the ffmpeg process
        except (OSError, RuntimeError, ValueError) as e:
            _remove_partial(self._path)
            raise EncoderInitFailure(
                f"Cannot open {profile.codec} encoder at "
                f"{profile.width}x{profile.height}: {e}"
            ) from e
        self._writer = writer
        logger.debug("streaming encoder open: %s %s@%dfps", self._path, profile.name, fps)

    def submit(self, frame):
        if self._writer is None:
            raise EncoderSubmitFailure("Encoder is not open")
        _check_frame(frame, self._profile)
        try:
            self._writer.send(np.ascontiguousarray(frame))
        except (OSError, RuntimeError, StopIteration) as e:
            raise EncoderSubmitFailure(f"ffmpeg rejected frame: {e}") from e

    def finalize(self):
        if self._writer is None:
            raise EncoderSubmitFailure("Encoder is not open")
        writer, self._writer = self._writer, None
        try:
            writer.close()  # flushes and waits for ffmpeg to finish the file
        except (OSError, RuntimeError) as e:
            raise EncoderSubmitFailure(f"ffmpeg failed to finalize {self._path}: {e}") from e
        return self._path

    def abort(self):
        writer, self._writer = self._writer, None
        if writer is not None:
            try:
                writer.close()
            except (OSError, RuntimeError) as e:
                logger.warning("ffmpeg exited with an error while aborting: %s", e)
        _remove_partial(self._path)


# ── Batch backend ────────────────────────────────────────────────


class BatchEncoder(EncoderBackend):
    """Buffer every frame, then encode at full speed with moviepy."""

    name = "batch"
    paced = False

    def __init__(self, quiet: bool = True):
        self.quiet = quiet
        self._frames = None
        self._path = None
        self._profile = None
        self._fps = None

    @property
    def buffered(self) -> int:
        return len(self._frames) if self._frames is not None else 0

    def open(self, path, profile, fps):
        self._path = Path(path)
        self._profile = profile
        self._fps = fps
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EncoderInitFailure(f"Cannot create output directory: {e}") from e
        self._frames = []

    def submit(self, frame):
        if self._frames is None:
            raise EncoderSubmitFailure("Encoder is not open")
        _check_frame(frame, self._profile)
        self._frames.append(frame)

    def finalize(self):
        if not self._frames:
            raise EncoderSubmitFailure("No frames were submitted")
        frames, self._frames = self._frames, None
        profile = self._profile
        clip = ImageSequenceClip(frames, fps=self._fps)
        try:
            clip.write_videofile(
                str(self._path),
                fps=self._fps,
                codec=profile.codec,
                bitrate=f"{profile.bitrate // 1000}k",
                audio=False,
                ffmpeg_params=[*_codec_params(profile.codec), "-pix_fmt", "yuv420p"],
                logger=None if self.quiet else "bar",
            )
        except (OSError, RuntimeError) as e:
            _remove_partial(self._path)
            raise EncoderSubmitFailure(f"moviepy failed to encode {self._path}: {e}") from e
        finally:
            clip.close()
        return self._path

    def abort(self):
        self._frames = None
        _remove_partial(self._path)


# ── Backend registry ─────────────────────────────────────────────

BACKENDS = {
    "streaming": StreamingEncoder,
    "batch": BatchEncoder,
}


def get_backend(name: str, **kwargs) -> EncoderBackend:
    """Instantiate a backend by registry name."""
    if name not in BACKENDS:
        raise ValueError(f"Unknown encoder backend '{name}'. Valid: {sorted(BACKENDS)}")
    return BACKENDS[name](**kwargs)
