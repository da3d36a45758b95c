"""CLI for reel rendering.

Reads a YAML reel manifest, validates the image paths, composites every
frame and encodes the reel into --output-dir.

Usage:
    # Render at the manifest's quality with the streaming encoder
    python -m quotereel.cli \
        --manifest reel.yaml --output-dir /tmp/reels/

    # Quick 1080p render, encoded as fast as possible
    python -m quotereel.cli \
        --manifest reel.yaml --output-dir /tmp/reels/ \
        --quality 1080p --backend batch

    # Validate only (no rendering)
    python -m quotereel.cli \
        --manifest reel.yaml --validate
"""

import argparse
import logging
import sys
import time
from dataclasses import replace

from .collection import ImageSource
from .encoders import BACKENDS
from .errors import JobCancelled
from .manifest import load_reel_manifest, validate_paths
from .pipeline import ReelTiming
from .session import ReelSession
from .settings import QUALITY_PROFILES


# Print a progress line every this many percent.
PROGRESS_STEP = 10


def _progress_printer(step=PROGRESS_STEP):
    """Return a progress callback that prints every ``step`` percent."""
    last = [-step]

    def report(percent):
        if percent >= last[0] + step or percent == 100:
            last[0] = percent - percent % step
            print(f"  {percent:3d}%", flush=True)

    return report


def load_images(paths):
    """Build ImageSource handles for manifest image paths (headers only)."""
    return [ImageSource.from_path(p) for p in paths]


# ── Main render ──────────────────────────────────────────────────


def render_reel(
    manifest_path: str,
    output_dir: str,
    backend: str | None = None,
    quality: str | None = None,
    pacing: bool | None = None,
):
    """Load manifest, validate, render and encode the reel.

    Command-line options override the manifest's ``output`` and
    ``settings.quality`` values.

    Args:
        manifest_path: Path to YAML reel manifest.
        output_dir: Directory the reel is written to.
        backend: Encoder backend name (streaming | batch).
        quality: Quality profile name (1080p | 4k).
        pacing: Submit frames at real-time rate.

    Returns:
        The ReelArtifact of the finished reel.

    Raises:
        JobCancelled: Interrupted with Ctrl-C.
        ReelError: Decode or encoder failure.
    """
    config = load_reel_manifest(manifest_path)
    validate_paths(config)

    settings = config["settings"]
    if quality is not None:
        settings = replace(settings, quality=quality)
    output = config["output"]
    backend = backend or output["backend"]
    pacing = output["pacing"] if pacing is None else pacing

    session = ReelSession(config["quote"], settings, config["text"])
    session.collection.add_many(load_images(config["images"]))

    timing = ReelTiming.compute(len(session.collection), settings)
    profile = settings.quality
    label = (
        f"{len(session.collection)} images, {settings.transition.value}, "
        f"{profile.name} {profile.width}x{profile.height}"
    )
    print(f"  START  {label}", flush=True)
    print(
        f"         {timing.total_frames} frames @ {timing.fps}fps "
        f"({timing.duration:.1f}s), {backend} encoder"
        f"{'' if pacing else ', unpaced'}",
        flush=True,
    )

    t0 = time.monotonic()
    job = session.generate(
        output_dir, backend=backend, pace=pacing,
        progress_callback=_progress_printer(),
    )
    try:
        while not job.wait(0.5):
            pass
    except KeyboardInterrupt:
        print("  Cancelling...", flush=True)
    finally:
        session.close(timeout=None)

    artifact = job.result()
    elapsed = time.monotonic() - t0
    if artifact.profile.name != profile.name:
        print(f"  NOTE   encoder fell back to {artifact.profile.name}", flush=True)
    print(
        f"  DONE   {label} — {artifact.duration:.1f}s video, {elapsed:.1f}s wall",
        flush=True,
    )
    print(f"\nDone: {artifact.path}")
    return artifact


# ── CLI entry point ───────────────────────────────────────────────


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Quote reel renderer — render a YAML reel manifest to video.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML reel manifest",
    )
    parser.add_argument(
        "--output-dir",
        help="Directory to write the reel into",
    )
    parser.add_argument(
        "--backend", choices=sorted(BACKENDS), default=None,
        help="Encoder backend (default: manifest output.backend, else streaming)",
    )
    parser.add_argument(
        "--quality", choices=sorted(QUALITY_PROFILES), default=None,
        help="Output quality (default: manifest settings.quality, else 4k)",
    )
    parser.add_argument(
        "--no-pacing", action="store_true",
        help="Submit frames as fast as they render instead of in real time",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Validate manifest only — check paths, don't render",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log pipeline details to stderr",
    )
    args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.validate:
        config = load_reel_manifest(args.manifest)
        validate_paths(config)
        settings = config["settings"]
        quote = config["quote"]
        print(f"Manifest valid: {len(config['images'])} images")
        for i, p in enumerate(config["images"]):
            print(f"  {i}: {p}")
        author = f" — {quote.author}" if quote.author else ""
        print(f"Quote: {quote.text[:60]}{author}")
        print(
            f"Settings: {settings.seconds_per_image}s/image, "
            f"{settings.transition.value}, {settings.quality.name}, {settings.fps}fps"
        )
        print("All paths verified.")
        return

    if not args.output_dir:
        parser.error("--output-dir is required (unless using --validate)")

    try:
        render_reel(
            args.manifest, args.output_dir,
            backend=args.backend,
            quality=args.quality,
            pacing=False if args.no_pacing else None,
        )
    except (KeyboardInterrupt, JobCancelled):
        print("Cancelled.", flush=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
