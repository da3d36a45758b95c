"""Image collection — the ordered, bounded list of reel backgrounds.

Images are referenced through ImageSource handles. A handle records the
image's natural size when it is added but decodes pixels only on demand,
so a large collection costs little memory until frames are rendered.

The collection also tracks the preview selection (the image currently
shown on screen) and keeps it in range across removals.

While an encode is running the collection is frozen: the encoder works
from a snapshot, and any add/remove/move raises CollectionLocked.
"""

import io
from contextlib import contextmanager
from enum import Enum
from pathlib import Path

from PIL import Image, ImageOps

from .errors import CollectionFull, CollectionLocked, ImageDecodeFailure
from .settings import MAX_IMAGES, MIN_IMAGES


# EXIF orientations that rotate by 90 degrees (width and height swap).
_EXIF_ORIENTATION_TAG = 0x0112
_ROTATED_ORIENTATIONS = {5, 6, 7, 8}


class Direction(str, Enum):
    LEFT = "left"
    RIGHT = "right"


# ── Image handles ────────────────────────────────────────────────


class ImageSource:
    """Opaque handle to one background image plus its natural size.

    Build with ``from_path``, ``from_bytes`` or ``from_image``. The handle
    is immutable; replacing an image means remove + add.
    """

    __slots__ = ("_path", "_data", "_image", "name", "width", "height")

    def __init__(self, name: str, width: int, height: int, *,
                 path: Path | None = None, data: bytes | None = None,
                 image: Image.Image | None = None):
        self._path = path
        self._data = data
        self._image = image
        self.name = name
        self.width = width
        self.height = height

    def __repr__(self):
        return f"ImageSource({self.name!r}, {self.width}x{self.height})"

    @property
    def aspect(self) -> float:
        return self.width / self.height

    @classmethod
    def from_path(cls, path) -> "ImageSource":
        """Reference an image file; only the header is read here."""
        path = Path(path)
        width, height = _read_size(lambda: Image.open(path), str(path))
        return cls(path.name, width, height, path=path)

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "upload") -> "ImageSource":
        """Reference encoded image bytes (e.g. an upload body)."""
        data = bytes(data)
        width, height = _read_size(lambda: Image.open(io.BytesIO(data)), name)
        return cls(name, width, height, data=data)

    @classmethod
    def from_image(cls, image: Image.Image, name: str = "image") -> "ImageSource":
        """Wrap an already-decoded Pillow image."""
        image = image.convert("RGB")
        return cls(name, image.width, image.height, image=image)

    def decode(self) -> Image.Image:
        """Decode pixels into an RGB image, honouring EXIF orientation.

        Raises:
            OSError: The underlying source cannot be read or decoded.
        """
        if self._image is not None:
            return self._image
        fp = self._path if self._path is not None else io.BytesIO(self._data)
        with Image.open(fp) as im:
            im = ImageOps.exif_transpose(im)
            return im.convert("RGB")


def _read_size(opener, name: str) -> tuple[int, int]:
    """Read (width, height) from an image header, rotated per EXIF."""
    try:
        with opener() as im:
            width, height = im.size
            orientation = im.getexif().get(_EXIF_ORIENTATION_TAG)
    except OSError as e:
        raise ValueError(f"Not a decodable image: {name} ({e})") from e
    if orientation in _ROTATED_ORIENTATIONS:
        width, height = height, width
    return width, height


def decode_image(source: ImageSource, index: int) -> Image.Image:
    """Decode ``source`` or raise ImageDecodeFailure naming its index."""
    try:
        return source.decode()
    except OSError as e:
        raise ImageDecodeFailure(index, source.name, e) from e


# ── Collection ───────────────────────────────────────────────────


class ImageCollection:
    """Ordered list of ImageSource handles, at most ``max_images`` long."""

    def __init__(self, max_images: int = MAX_IMAGES, min_images: int = MIN_IMAGES):
        self._images: list[ImageSource] = []
        self.max_images = max_images
        self.min_images = min_images
        self.selected = 0
        self._freeze_depth = 0

    def __len__(self):
        return len(self._images)

    def __iter__(self):
        return iter(list(self._images))

    def __getitem__(self, index: int) -> ImageSource:
        return self._images[index]

    @property
    def count(self) -> int:
        return len(self._images)

    @property
    def remaining_slots(self) -> int:
        return self.max_images - len(self._images)

    @property
    def ready(self) -> bool:
        """True when the collection size allows encoding to start."""
        return self.min_images <= len(self._images) <= self.max_images

    @property
    def locked(self) -> bool:
        return self._freeze_depth > 0

    # ── Mutation ─────────────────────────────────────────────────

    def _check_unlocked(self, op: str) -> None:
        if self._freeze_depth:
            raise CollectionLocked(
                f"Cannot {op} while a reel is being encoded from this collection"
            )

    def add(self, image: ImageSource) -> None:
        """Append an image.

        Raises:
            CollectionFull: The collection already holds max_images.
        """
        self._check_unlocked("add an image")
        if len(self._images) >= self.max_images:
            raise CollectionFull(self.max_images)
        self._images.append(image)

    def add_many(self, images) -> int:
        """Append images until the collection is full; return how many fit.

        Extra images beyond the remaining slots are ignored, the way a
        multi-file upload only takes as many files as there is room for.
        """
        self._check_unlocked("add images")
        added = 0
        for image in images:
            if len(self._images) >= self.max_images:
                break
            self._images.append(image)
            added += 1
        return added

    def remove(self, index: int) -> ImageSource:
        """Remove and return the image at ``index``.

        A preview selection at or after the removed slot steps back by one,
        so removing an earlier image keeps the same picture selected and
        removing the selected one moves to its predecessor (0 stays 0).
        """
        self._check_unlocked("remove an image")
        if not 0 <= index < len(self._images):
            raise IndexError(
                f"Image index {index} out of range (collection has {len(self._images)})"
            )
        removed = self._images.pop(index)
        if self.selected >= index and self.selected > 0:
            self.selected -= 1
        return removed

    def move(self, index: int, direction: Direction | str) -> bool:
        """Swap the image at ``index`` with its left or right neighbour.

        Returns False (and changes nothing) at the collection bounds.
        """
        self._check_unlocked("reorder images")
        direction = Direction(direction)
        target = index - 1 if direction is Direction.LEFT else index + 1
        if not (0 <= index < len(self._images) and 0 <= target < len(self._images)):
            return False
        images = self._images
        images[index], images[target] = images[target], images[index]
        return True

    reorder = move

    def clear(self) -> None:
        self._check_unlocked("clear the collection")
        self._images.clear()
        self.selected = 0

    def select(self, index: int) -> None:
        if not 0 <= index < max(1, len(self._images)):
            raise IndexError(f"Cannot select image {index}")
        self.selected = index

    # ── Encoding support ─────────────────────────────────────────

    def snapshot(self) -> tuple[ImageSource, ...]:
        """Immutable copy of the current order."""
        return tuple(self._images)

    def lock(self) -> tuple[ImageSource, ...]:
        """Make the collection read-only and return a snapshot of its order.

        Every lock() must be paired with an unlock(); locks nest.
        """
        self._freeze_depth += 1
        return self.snapshot()

    def unlock(self) -> None:
        if self._freeze_depth == 0:
            raise RuntimeError("unlock() called on an unlocked collection")
        self._freeze_depth -= 1

    @contextmanager
    def frozen(self):
        """Hold the collection read-only; yields a snapshot of its order."""
        snapshot = self.lock()
        try:
            yield snapshot
        finally:
            self.unlock()
