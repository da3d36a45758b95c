"""Encoding pipeline — drive the compositor frame by frame into an encoder.

Timeline math (all counts in frames, rounded half-up):

  total_frames      = round(image_count * seconds_per_image * fps)
  frames_per_image  = round(seconds_per_image * fps)
  transition_frames = round(fps * transition_duration(seconds_per_image))

Frame f belongs to image floor(f / frames_per_image), clamped to the last
image: when rounding leaves total_frames longer than image_count full
slots, the last image holds for the remainder instead of flashing the
first image again. The last transition_frames frames of each image slot
form its transition window: the k-th frame of the window (k = 0..n-1)
blends towards the next image with progress (k + 1) / (n + 1), strictly
inside (0, 1). Every other frame has progress 0 and no next image. Cut
and default transitions have no window.

EncodingJob state machine:

  idle → rendering → finalizing → done
              │  └──────────────→ failed      (decode / encoder error)
              └─────────────────→ cancelled   (cancel() during rendering)

Only ``done`` yields an artifact. On failure or cancellation the encoder
is aborted and the partial output deleted. ``progress_percent`` never
decreases and reaches 100 only in ``done``; a cancelled job keeps the
last value it reported.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .compositor import FrameCompositor, RenderContext
from .encoders import EncoderBackend
from .errors import EncoderInitFailure, InsufficientImages, JobCancelled
from .settings import (
    MIN_IMAGES,
    QualityProfile,
    Quote,
    ReelSettings,
    TextSettings,
    fallback_profile,
)
from .transitions import transition_duration

logger = logging.getLogger(__name__)


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


# ── Timeline ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class ReelTiming:
    image_count: int
    fps: int
    seconds_per_image: float
    total_frames: int
    frames_per_image: int
    transition_frames: int

    @classmethod
    def compute(cls, image_count: int, settings: ReelSettings) -> "ReelTiming":
        fps = settings.fps
        spi = settings.seconds_per_image
        frames_per_image = max(1, round_half_up(spi * fps))
        transition_frames = round_half_up(fps * transition_duration(spi))
        # At least one frame of each slot shows the image on its own.
        transition_frames = max(0, min(transition_frames, frames_per_image - 1))
        return cls(
            image_count=image_count,
            fps=fps,
            seconds_per_image=spi,
            total_frames=round_half_up(image_count * spi * fps),
            frames_per_image=frames_per_image,
            transition_frames=transition_frames,
        )

    @property
    def duration(self) -> float:
        """Encoded duration in seconds."""
        return self.total_frames / self.fps

    @property
    def window_start(self) -> int:
        """Offset within a full slot where the transition window begins."""
        return self.frames_per_image - self.transition_frames

    @property
    def last_slot_start(self) -> int:
        return (self.image_count - 1) * self.frames_per_image

    def slot_length(self, image_index: int) -> int:
        """Frames shown for ``image_index``; the last slot absorbs rounding."""
        if image_index < self.image_count - 1:
            return self.frames_per_image
        return max(0, self.total_frames - self.last_slot_start)


@dataclass(frozen=True)
class FrameSpec:
    frame: int
    image_index: int
    frame_in_image: int
    progress: float = 0.0
    next_index: int | None = None

    @property
    def in_transition(self) -> bool:
        return self.next_index is not None


def frame_schedule(image_count: int, settings: ReelSettings):
    """Yield a FrameSpec for every frame of the reel, in order."""
    timing = ReelTiming.compute(image_count, settings)
    blends = settings.transition.blends
    n = timing.transition_frames
    for frame in range(timing.total_frames):
        image_index = min(frame // timing.frames_per_image, image_count - 1)
        frame_in_image = frame - image_index * timing.frames_per_image
        slot = timing.slot_length(image_index)
        k = frame_in_image - (slot - min(n, slot - 1))
        if blends and n > 0 and k >= 0:
            yield FrameSpec(
                frame, image_index, frame_in_image,
                progress=(k + 1) / (n + 1),
                next_index=(image_index + 1) % image_count,
            )
        else:
            yield FrameSpec(frame, image_index, frame_in_image)


# ── Artifacts ────────────────────────────────────────────────────


def artifact_filename(profile: QualityProfile, timestamp_ms: int | None = None) -> str:
    """Download name: quote-reel-{quality}-{timestamp}.{ext}."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"quote-reel-{profile.name}-{timestamp_ms}.{profile.extension}"


@dataclass(frozen=True)
class ReelArtifact:
    path: Path
    profile: QualityProfile
    frame_count: int
    duration: float

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def mime_type(self) -> str:
        return self.profile.mime_type

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


# ── Job ──────────────────────────────────────────────────────────


class JobState(str, Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {JobState.DONE, JobState.FAILED, JobState.CANCELLED}


class EncodingJob:
    """One reel encode, from a fixed image snapshot to a finished file.

    Args:
        images: Sequence of ImageSource handles (copied into a tuple).
        quote: Quote drawn on every frame.
        settings: Duration, transition, quality and fps.
        backend: Encoder backend instance.
        output_dir: Directory the artifact is written to.
        text: Quote styling; defaults to TextSettings().
        pace: Submit frames at real-time rate. Defaults to backend.paced.
        allow_fallback: Retry with the next lower quality profile when the
            encoder cannot be opened at the requested one.
        progress_callback: Called with the new percentage whenever it grows.
        done_callback: Called with the job once it reaches a terminal state.

    Raises:
        InsufficientImages: Fewer than ``min_images`` images.
    """

    def __init__(
        self,
        images,
        quote: Quote,
        settings: ReelSettings,
        backend: EncoderBackend,
        output_dir=".",
        text: TextSettings | None = None,
        pace: bool | None = None,
        allow_fallback: bool = True,
        progress_callback=None,
        done_callback=None,
        min_images: int = MIN_IMAGES,
    ):
        self.images = tuple(images)
        if len(self.images) < min_images:
            raise InsufficientImages(len(self.images), min_images)
        self.quote = quote
        self.settings = settings
        self.backend = backend
        self.output_dir = Path(output_dir)
        self.text = text or TextSettings()
        self.pace = backend.paced if pace is None else pace
        self.allow_fallback = allow_fallback
        self.timing = ReelTiming.compute(len(self.images), settings)

        self._progress_callbacks = [progress_callback] if progress_callback else []
        self._done_callbacks = [done_callback] if done_callback else []
        self._cancel = threading.Event()
        self._lock = threading.Lock()
        self._thread = None
        self._finished = threading.Event()

        self.state = JobState.IDLE
        self.progress_percent = 0
        self.frames_submitted = 0
        self.profile = settings.quality
        self.artifact: ReelArtifact | None = None
        self.error: BaseException | None = None

    # ── Listeners ────────────────────────────────────────────────

    def add_progress_listener(self, callback) -> None:
        self._progress_callbacks.append(callback)

    def add_done_listener(self, callback) -> None:
        self._done_callbacks.append(callback)

    # ── Control ──────────────────────────────────────────────────

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Ask the job to stop; it does so within one frame interval."""
        self._cancel.set()

    def start(self) -> threading.Thread:
        """Run the job on a background thread and return the thread."""
        self._thread = threading.Thread(target=self.run, name="quotereel-encode", daemon=True)
        self._thread.start()
        return self._thread

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the job is terminal; False if the timeout expired."""
        return self._finished.wait(timeout)

    def result(self) -> ReelArtifact:
        """Return the artifact of a finished job.

        Raises:
            JobCancelled: The job was cancelled.
            ReelError: (or the original exception) The job failed.
            RuntimeError: The job has not finished.
        """
        if self.state is JobState.DONE:
            return self.artifact
        if self.state is JobState.CANCELLED:
            raise JobCancelled("Reel generation was cancelled")
        if self.state is JobState.FAILED:
            raise self.error
        raise RuntimeError(f"Job has not finished (state: {self.state.value})")

    # ── Execution ────────────────────────────────────────────────

    def run(self) -> JobState:
        """Render and encode every frame; return the terminal state."""
        with self._lock:
            if self.state is not JobState.IDLE:
                raise RuntimeError(f"Job already ran (state: {self.state.value})")
            self.state = JobState.RENDERING

        timing = self.timing
        logger.info(
            "encoding reel: %d images, %d frames @ %dfps, %s, %s backend",
            timing.image_count, timing.total_frames, timing.fps,
            self.settings.transition.value, self.backend.name,
        )
        opened = False
        try:
            if self._cancel.is_set():
                return self._finish(JobState.CANCELLED)
            path = self._open_backend()
            opened = True
            self._render_frames()
            if self._cancel.is_set():
                self.backend.abort()
                logger.info("reel cancelled after %d frames", self.frames_submitted)
                return self._finish(JobState.CANCELLED)

            self.state = JobState.FINALIZING
            out_path = Path(self.backend.finalize() or path)
        except Exception as e:
            if opened:
                self.backend.abort()
            self.error = e
            logger.error(
                "reel generation failed after %d frames: %s",
                self.frames_submitted, e, exc_info=not isinstance(e, EncoderInitFailure),
            )
            return self._finish(JobState.FAILED)

        self.artifact = ReelArtifact(
            out_path, self.profile, self.frames_submitted,
            self.frames_submitted / timing.fps,
        )
        self._report(100)
        logger.info("reel written: %s", out_path)
        return self._finish(JobState.DONE)

    def _open_backend(self) -> Path:
        """Open the backend, stepping down quality profiles on init failure."""
        profile = self.settings.quality
        while True:
            path = self.output_dir / artifact_filename(profile)
            try:
                self.backend.open(path, profile, self.settings.fps)
            except EncoderInitFailure as e:
                lower = fallback_profile(profile) if self.allow_fallback else None
                if lower is None:
                    raise
                logger.warning(
                    "encoder cannot open %s (%s); falling back to %s",
                    profile.name, e, lower.name,
                )
                profile = lower
                continue
            self.profile = profile
            return path

    def _render_frames(self) -> None:
        timing = self.timing
        ctx = RenderContext(
            self.profile.width, self.profile.height, self.quote, self.text,
            self.settings.transition,
        )
        compositor = FrameCompositor(ctx, self.images)
        interval = 1.0 / timing.fps
        started = time.monotonic()

        for spec in frame_schedule(timing.image_count, self.settings):
            if self._cancel.is_set():
                return
            frame = compositor.render(spec.image_index, spec.progress, spec.next_index)
            self.backend.submit(frame)
            self.frames_submitted += 1
            self._report(math.floor(spec.frame / timing.total_frames * 100))
            if self.pace:
                # Real-time pacing against a fixed schedule; a cancel wakes
                # the wait immediately.
                delay = started + (spec.frame + 1) * interval - time.monotonic()
                if self._cancel.wait(max(0.0, delay)):
                    return

    def _report(self, percent: int) -> None:
        percent = max(0, min(100, percent))
        if percent == 100 and self.state is not JobState.FINALIZING:
            percent = 99
        if percent <= self.progress_percent:
            return
        self.progress_percent = percent
        for callback in self._progress_callbacks:
            try:
                callback(percent)
            except Exception:
                logger.exception("progress listener failed at %d%%", percent)

    def _finish(self, state: JobState) -> JobState:
        self.state = state
        self._finished.set()
        for callback in self._done_callbacks:
            # Listener errors are logged; the job keeps its terminal state.
            try:
                callback(self)
            except Exception:
                logger.exception("done listener failed for %s job", state.value)
        return state
