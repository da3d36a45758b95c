"""Tests for the encoding pipeline: timing, frame schedule, job lifecycle."""

import re
import time

import pytest
from PIL import Image

from quotereel.collection import ImageSource
from quotereel.errors import (
    EncoderInitFailure,
    EncoderSubmitFailure,
    ImageDecodeFailure,
    InsufficientImages,
    JobCancelled,
)
from quotereel.pipeline import (
    EncodingJob,
    JobState,
    ReelTiming,
    artifact_filename,
    frame_schedule,
)
from quotereel.settings import QUALITY_PROFILES, Quote, ReelSettings, TextSettings

from conftest import TINY_PROFILE, MemoryEncoder

QUOTE = Quote("Be here now.", "Ram Dass")
BARE = TextSettings(show_quote=False, watermark="")


@pytest.fixture(autouse=True)
def _in_tmp(tmp_path, monkeypatch):
    """Jobs default to writing into the working directory."""
    monkeypatch.chdir(tmp_path)


def _settings(transition="fade", spi=1.0, fps=30, quality=TINY_PROFILE):
    return ReelSettings(seconds_per_image=spi, transition=transition, quality=quality, fps=fps)


def _job(sources, backend, settings=None, tmp_path=".", **kwargs):
    return EncodingJob(
        sources, QUOTE, settings or _settings(), backend,
        output_dir=tmp_path, text=BARE, **kwargs,
    )


# ── Timing ───────────────────────────────────────────────────────


class TestReelTiming:
    def test_three_images_one_second(self):
        t = ReelTiming.compute(3, _settings())
        assert t.total_frames == 90
        assert t.frames_per_image == 30
        assert t.transition_frames == 9
        assert t.duration == pytest.approx(3.0)

    @pytest.mark.parametrize("count, spi, fps, expected", [
        (2, 0.3, 30, 18),
        (5, 0.8, 30, 120),
        (20, 5, 30, 3000),
        (4, 0.5, 24, 48),
    ])
    def test_total_frames(self, count, spi, fps, expected):
        assert ReelTiming.compute(count, _settings(spi=spi, fps=fps)).total_frames == expected

    def test_window_clamped_for_long_images(self):
        # 30% of 5s is 1.5s, clamped to 0.5s = 15 frames.
        assert ReelTiming.compute(2, _settings(spi=5)).transition_frames == 15

    def test_window_clamped_for_short_images(self):
        # 30% of 0.3s is 0.09s, raised to 0.1s = 3 frames.
        assert ReelTiming.compute(2, _settings(spi=0.3)).transition_frames == 3

    def test_window_leaves_one_static_frame(self):
        t = ReelTiming.compute(2, _settings(spi=0.1, fps=10))
        assert t.frames_per_image == 1
        assert t.transition_frames == 0


class TestFrameSchedule:
    def test_one_spec_per_frame(self):
        specs = list(frame_schedule(3, _settings()))
        assert [s.frame for s in specs] == list(range(90))

    def test_image_index_windows(self):
        specs = list(frame_schedule(3, _settings()))
        for k in range(3):
            assert {s.image_index for s in specs[k * 30:(k + 1) * 30]} == {k}

    def test_index_cycles_modulo_count(self):
        s = _settings()
        for spec in frame_schedule(4, s):
            assert spec.image_index == (spec.frame // 30) % 4

    def test_transition_window(self):
        specs = list(frame_schedule(3, _settings()))
        window = [s for s in specs[:30] if s.in_transition]
        assert [s.frame for s in window] == list(range(21, 30))
        assert all(s.next_index == 1 for s in window)

    def test_progress_strictly_inside_window(self):
        specs = list(frame_schedule(3, _settings()))
        window = [s.progress for s in specs[21:30]]
        assert all(0 < p < 1 for p in window)
        assert window == sorted(window)
        assert len(set(window)) == len(window)

    def test_progress_zero_outside_window(self):
        for spec in frame_schedule(3, _settings()):
            if not spec.in_transition:
                assert spec.progress == 0
                assert spec.next_index is None

    def test_last_image_transitions_to_first(self):
        specs = list(frame_schedule(3, _settings()))
        assert specs[-1].image_index == 2
        assert specs[-1].next_index == 0

    def test_rounding_remainder_holds_last_image(self):
        # 0.345s at 30fps: 10 frames per slot but 207 frames in total.
        specs = list(frame_schedule(20, _settings(spi=0.345)))
        assert len(specs) == 207
        indices = [s.image_index for s in specs]
        assert indices == sorted(indices)
        assert indices[-17:] == [19] * 17
        window = [s for s in specs[190:] if s.in_transition]
        assert [s.frame for s in window] == [204, 205, 206]
        assert all(s.next_index == 0 for s in window)
        assert [s.progress for s in window] == [0.25, 0.5, 0.75]

    @pytest.mark.parametrize("transition", ["cut", "default"])
    def test_no_window_without_blending(self, transition):
        assert not any(s.in_transition for s in frame_schedule(3, _settings(transition)))


class TestArtifactFilename:
    def test_pattern(self):
        name = artifact_filename(QUALITY_PROFILES["4k"], 1700000000000)
        assert name == "quote-reel-4k-1700000000000.webm"

    def test_default_timestamp(self):
        name = artifact_filename(QUALITY_PROFILES["1080p"])
        assert re.fullmatch(r"quote-reel-1080p-\d{13}\.webm", name)


# ── Job lifecycle ────────────────────────────────────────────────


class TestEncodingJob:
    def test_runs_to_done(self, make_sources, tmp_path):
        backend = MemoryEncoder()
        job = _job(make_sources(3), backend, tmp_path=tmp_path)
        assert job.state is JobState.IDLE

        assert job.run() is JobState.DONE
        assert backend.frames == 90
        assert backend.shapes == {(112, 64, 3)}
        assert backend.finalized and not backend.aborted
        assert job.progress_percent == 100

        artifact = job.result()
        assert artifact.frame_count == 90
        assert artifact.duration == pytest.approx(3.0)
        assert artifact.filename.startswith("quote-reel-tiny-")
        assert artifact.filename.endswith(".mp4")
        assert artifact.mime_type == "video/mp4"
        assert artifact.path.parent == tmp_path
        assert artifact.read_bytes() == b"reel"

    def test_one_image_rejected_before_any_work(self, make_sources):
        backend = MemoryEncoder()
        with pytest.raises(InsufficientImages):
            _job(make_sources(1), backend)
        assert backend.open_attempts == []

    def test_insufficient_images_is_value_error(self):
        with pytest.raises(ValueError):
            _job([], MemoryEncoder())

    def test_progress_monotone_and_hundred_only_on_done(self, make_sources):
        seen = []
        states = []

        def on_progress(p):
            seen.append(p)
            states.append(job.state)

        job = _job(make_sources(3), MemoryEncoder(), progress_callback=on_progress)
        job.run()
        assert seen == sorted(seen)
        assert len(seen) == len(set(seen))
        assert seen[-1] == 100
        assert 100 not in seen[:-1]
        assert all(s is JobState.RENDERING for s in states[:-1])

    def test_cancel_mid_render(self, make_sources):
        backend = MemoryEncoder()
        job = _job(make_sources(3), backend)
        backend.on_submit = lambda n: job.cancel() if n == 40 else None

        assert job.run() is JobState.CANCELLED
        assert backend.frames == 40
        assert backend.aborted and not backend.finalized
        assert job.artifact is None
        # Frozen at the last reported value: frame 39 of 90.
        assert job.progress_percent == 43
        with pytest.raises(JobCancelled):
            job.result()

    def test_cancel_before_run(self, make_sources):
        backend = MemoryEncoder()
        job = _job(make_sources(2), backend)
        job.cancel()
        assert job.run() is JobState.CANCELLED
        assert backend.frames == 0

    def test_decode_failure_fails_job(self, make_sources, tmp_path):
        path = tmp_path / "gone.png"
        Image.new("RGB", (10, 10)).save(path)
        broken = ImageSource.from_path(path)
        path.unlink()

        backend = MemoryEncoder()
        job = _job([*make_sources(2), broken], backend)
        assert job.run() is JobState.FAILED
        assert isinstance(job.error, ImageDecodeFailure)
        assert job.error.index == 2
        assert backend.aborted
        assert job.artifact is None
        assert job.progress_percent < 100
        with pytest.raises(ImageDecodeFailure):
            job.result()

    def test_submit_failure_fails_job(self, make_sources):
        backend = MemoryEncoder(fail_at=10)
        job = _job(make_sources(2), backend)
        assert job.run() is JobState.FAILED
        assert isinstance(job.error, EncoderSubmitFailure)
        assert backend.aborted

    def test_init_failure_without_fallback(self, make_sources):
        backend = MemoryEncoder(fail_open={"tiny"})
        job = _job(make_sources(2), backend)
        assert job.run() is JobState.FAILED
        assert isinstance(job.error, EncoderInitFailure)
        assert not backend.aborted

    def test_falls_back_from_4k(self, make_sources):
        backend = MemoryEncoder(fail_open={"4k"})
        settings = _settings(spi=0.1, fps=10, quality="4k")
        job = _job(make_sources(2), backend, settings=settings)
        assert job.run() is JobState.DONE
        assert backend.open_attempts == ["4k", "1080p"]
        assert backend.shapes == {(1920, 1080, 3)}
        artifact = job.result()
        assert artifact.profile.name == "1080p"
        assert artifact.filename.startswith("quote-reel-1080p-")

    def test_fallback_disabled(self, make_sources):
        backend = MemoryEncoder(fail_open={"4k"})
        settings = _settings(spi=0.1, fps=10, quality="4k")
        job = _job(make_sources(2), backend, settings=settings, allow_fallback=False)
        assert job.run() is JobState.FAILED
        assert backend.open_attempts == ["4k"]

    def test_run_twice_raises(self, make_sources):
        job = _job(make_sources(2), MemoryEncoder())
        job.run()
        with pytest.raises(RuntimeError):
            job.run()

    def test_result_before_finish_raises(self, make_sources):
        job = _job(make_sources(2), MemoryEncoder())
        with pytest.raises(RuntimeError, match="has not finished"):
            job.result()

    def test_done_listener(self, make_sources):
        finished = []
        job = _job(make_sources(2), MemoryEncoder(), done_callback=finished.append)
        job.run()
        assert finished == [job]

    def test_raising_done_listener_keeps_artifact(self, make_sources, tmp_path):
        calls = []

        def broken(job):
            calls.append(job.state)
            raise RuntimeError("listener")

        backend = MemoryEncoder()
        job = _job(make_sources(2), backend, tmp_path=tmp_path, done_callback=broken)
        assert job.run() is JobState.DONE
        assert calls == [JobState.DONE]
        assert not backend.aborted
        assert job.error is None
        assert job.progress_percent == 100
        assert job.result().path.exists()

    def test_raising_progress_listener_does_not_fail_job(self, make_sources):
        def broken(percent):
            raise ValueError(percent)

        job = _job(make_sources(2), MemoryEncoder(), progress_callback=broken)
        assert job.run() is JobState.DONE
        assert job.progress_percent == 100

    def test_images_snapshotted(self, make_sources):
        sources = make_sources(2)
        job = _job(sources, MemoryEncoder())
        sources.append(sources[0])
        assert len(job.images) == 2


class TestPacing:
    def test_paced_render_takes_real_time(self, make_sources):
        # 2 images × 0.2s at 10fps = 4 frames ≈ 0.4s of wall time.
        settings = _settings(spi=0.2, fps=10)
        job = _job(make_sources(2), MemoryEncoder(), settings=settings, pace=True)
        t0 = time.monotonic()
        job.run()
        assert time.monotonic() - t0 >= 0.35

    def test_backend_decides_pacing_by_default(self, make_sources):
        assert _job(make_sources(2), MemoryEncoder(paced=True)).pace
        assert not _job(make_sources(2), MemoryEncoder(paced=False)).pace

    def test_cancel_interrupts_paced_wait(self, make_sources):
        backend = MemoryEncoder()
        job = _job(make_sources(3), backend, pace=True)   # ~3s paced
        job.start()
        time.sleep(0.2)
        job.cancel()
        assert job.wait(timeout=1.0)
        assert job.state is JobState.CANCELLED
        assert backend.frames < 90
