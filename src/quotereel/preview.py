"""Preview clock — cycles the on-screen image while the user edits a reel.

The clock only owns an index. It does not know about images; it asks
``count_fn`` how many there are each time it moves, so adds and removals
in the collection are picked up on the next tick. Auto-advance and the
manual next/previous controls use the same wrap-around arithmetic.
"""

import logging
import threading

logger = logging.getLogger(__name__)


def step_index(index: int, count: int, step: int = 1) -> int:
    """Move ``index`` by ``step`` with wrap-around; 0 when count is 0."""
    if count <= 0:
        return 0
    return (index + step) % count


class PreviewClock:
    """Auto-advancing preview index driven by a daemon thread.

    Args:
        count_fn: Zero-argument callable returning the current image count.
        period: Seconds between automatic advances.
        on_tick: Optional callback receiving the new index after every move
            (automatic or manual).
    """

    def __init__(self, count_fn, period: float = 1.0, on_tick=None):
        if period <= 0:
            raise ValueError(f"Preview period must be > 0, got {period!r}")
        self._count_fn = count_fn
        self.period = period
        self.on_tick = on_tick
        self._index = 0
        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._playing = False
        self._thread = None
        self._stopped = False

    @property
    def current_index(self) -> int:
        with self._lock:
            count = self._count_fn()
            if count <= 0:
                return 0
            return min(self._index, count - 1)

    @property
    def playing(self) -> bool:
        return self._playing

    # ── Manual controls ──────────────────────────────────────────

    def _move(self, step: int) -> int:
        with self._lock:
            self._index = step_index(self._index, self._count_fn(), step)
            index = self._index
        if self.on_tick is not None:
            self.on_tick(index)
        return index

    def next(self) -> int:
        return self._move(1)

    def previous(self) -> int:
        return self._move(-1)

    def seek(self, index: int) -> None:
        with self._lock:
            count = self._count_fn()
            self._index = index % count if count > 0 else 0

    def set_period(self, period: float) -> None:
        """Change the advance period; takes effect from the next tick."""
        if period <= 0:
            raise ValueError(f"Preview period must be > 0, got {period!r}")
        self.period = period
        self._wake.set()

    # ── Playback ─────────────────────────────────────────────────

    def play(self) -> None:
        if self._stopped:
            raise RuntimeError("Preview clock has been stopped")
        self._playing = True
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._run, name="quotereel-preview", daemon=True,
            )
            self._thread.start()
        self._wake.set()

    def pause(self) -> None:
        self._playing = False
        self._wake.set()

    def toggle(self) -> bool:
        """Flip between playing and paused; return the new playing state."""
        if self._playing:
            self.pause()
        else:
            self.play()
        return self._playing

    def stop(self, timeout: float | None = 1.0) -> None:
        """Stop playback and end the clock thread. The clock cannot restart."""
        self._stopped = True
        self._playing = False
        self._wake.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        while not self._stopped:
            if not self._playing:
                self._wake.wait()
                self._wake.clear()
                continue
            # A control call (pause, stop, new period) wakes the wait early
            # and restarts the period.
            if self._wake.wait(self.period):
                self._wake.clear()
                continue
            if self._playing and not self._stopped:
                self._move(1)
        logger.debug("preview clock stopped at index %d", self._index)
