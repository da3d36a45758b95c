"""Reel session — one editing session: images, settings, preview and encode.

A session holds everything the user edits (image collection, quote,
reel and text settings), a preview clock that cycles through the images
at the reel's per-image duration, and at most one encoding job.

While a job runs the collection is locked; it is unlocked again when the
job reaches a terminal state, whatever that state is. Closing the session
cancels a running job and stops the preview.
"""

import logging
from dataclasses import replace

from .collection import ImageCollection
from .encoders import EncoderBackend, get_backend
from .pipeline import EncodingJob
from .preview import PreviewClock
from .settings import MAX_IMAGES, MIN_IMAGES, Quote, ReelSettings, TextSettings

logger = logging.getLogger(__name__)


class ReelSession:
    """Editing state for one reel plus the lifecycle of its encode job."""

    def __init__(
        self,
        quote: Quote | None = None,
        settings: ReelSettings | None = None,
        text: TextSettings | None = None,
        max_images: int = MAX_IMAGES,
        min_images: int = MIN_IMAGES,
    ):
        self.quote = quote or Quote("")
        self.settings = settings or ReelSettings()
        self.text = text or TextSettings()
        self.collection = ImageCollection(max_images=max_images, min_images=min_images)
        self.clock = PreviewClock(
            lambda: len(self.collection),
            period=self.settings.seconds_per_image,
            on_tick=self._on_preview_tick,
        )
        self.job: EncodingJob | None = None

    def _on_preview_tick(self, index: int) -> None:
        if index < len(self.collection):
            self.collection.selected = index

    @property
    def is_generating(self) -> bool:
        return self.job is not None and not self.job.finished

    # ── Editing ──────────────────────────────────────────────────

    def update_settings(self, **changes) -> ReelSettings:
        """Replace reel settings; a running job keeps the ones it started with."""
        self.settings = replace(self.settings, **changes)
        self.clock.set_period(self.settings.seconds_per_image)
        return self.settings

    def update_text(self, **changes) -> TextSettings:
        self.text = replace(self.text, **changes)
        return self.text

    def set_quote(self, text: str, author: str = "") -> None:
        self.quote = Quote(text, author)

    # ── Encoding ─────────────────────────────────────────────────

    def generate(
        self,
        output_dir=".",
        backend: EncoderBackend | str = "streaming",
        background: bool = True,
        **job_kwargs,
    ) -> EncodingJob:
        """Start encoding the current collection.

        The collection is locked and snapshotted for the duration of the
        job. With ``background=False`` the job runs to completion before
        this returns.

        Raises:
            InsufficientImages: Fewer than the minimum number of images.
            RuntimeError: A job is already running.
        """
        if self.is_generating:
            raise RuntimeError("A reel is already being generated in this session")
        if isinstance(backend, str):
            backend = get_backend(backend)

        images = self.collection.lock()
        try:
            job = EncodingJob(
                images, self.quote, self.settings, backend,
                output_dir=output_dir,
                text=self.text,
                min_images=self.collection.min_images,
                **job_kwargs,
            )
        except BaseException:
            self.collection.unlock()
            raise
        job.add_done_listener(self._on_job_finished)
        self.job = job
        logger.info("session: generating %d-image reel", len(images))

        if background:
            job.start()
        else:
            job.run()
        return job

    def _on_job_finished(self, job: EncodingJob) -> None:
        self.collection.unlock()
        logger.info("session: job finished (%s)", job.state.value)

    def cancel(self) -> None:
        if self.is_generating:
            self.job.cancel()

    # ── Lifecycle ────────────────────────────────────────────────

    def close(self, timeout: float | None = 5.0) -> None:
        """Stop the preview and cancel any running job, waiting for it to end."""
        self.clock.stop()
        if self.is_generating:
            self.job.cancel()
            self.job.wait(timeout)

    def reset(self, timeout: float | None = 5.0) -> None:
        """Cancel any running job and clear the images and the quote."""
        if self.is_generating:
            self.job.cancel()
            self.job.wait(timeout)
        self.collection.clear()
        self.clock.seek(0)
        self.quote = Quote("")
        self.job = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
