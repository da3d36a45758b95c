"""Error hierarchy for reel generation.

Everything raised on purpose by quotereel derives from ReelError so a
caller can catch one type around ``EncodingJob.run()``. Validation errors
also derive from ValueError, matching how the manifest loaders report
bad input.
"""


class ReelError(Exception):
    """Base class for all reel generation errors."""


class InsufficientImages(ReelError, ValueError):
    """Fewer than MIN_IMAGES images when encoding was requested."""

    def __init__(self, count: int, minimum: int):
        super().__init__(
            f"At least {minimum} images are required to build a reel, got {count}"
        )
        self.count = count
        self.minimum = minimum


class CollectionFull(ReelError):
    """The image collection already holds MAX_IMAGES images."""

    def __init__(self, maximum: int):
        super().__init__(f"Image collection is full ({maximum} images max)")
        self.maximum = maximum


class CollectionLocked(ReelError):
    """The image collection was mutated while an encode holds it."""


class ImageDecodeFailure(ReelError):
    """An image could not be decoded at render time."""

    def __init__(self, index: int, source: str, cause: Exception):
        super().__init__(f"Image {index} ({source}) could not be decoded: {cause}")
        self.index = index
        self.source = source
        self.cause = cause


class EncoderInitFailure(ReelError):
    """The encoder backend could not be opened for the requested profile."""


class EncoderSubmitFailure(ReelError):
    """The encoder backend rejected a frame or failed to finalize."""


class JobCancelled(ReelError):
    """Raised by ``EncodingJob.result()`` when the job was cancelled."""
