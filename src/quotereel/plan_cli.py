"""CLI for reel planning — print the frame timeline without rendering.

Shows which frames each image occupies and where its transition window
falls, so durations and transitions can be tuned before a long 4K encode.

Usage:
    python -m quotereel.plan_cli --manifest reel.yaml

    # One line per frame
    python -m quotereel.plan_cli --manifest reel.yaml --frames
"""

import argparse
from pathlib import Path

from .manifest import load_reel_manifest
from .pipeline import ReelTiming, frame_schedule


def describe_plan(config: dict) -> list[str]:
    """Return the timeline summary lines for a loaded manifest config."""
    settings = config["settings"]
    images = config["images"]
    count = len(images)
    timing = ReelTiming.compute(count, settings)
    blends = settings.transition.blends

    lines = [
        f"{count} images × {settings.seconds_per_image}s @ {timing.fps}fps "
        f"= {timing.total_frames} frames ({timing.duration:.2f}s)",
        f"Transition: {settings.transition.value}"
        + (f", {timing.transition_frames} frames per image" if blends else ""),
        f"Output: {settings.quality.name} {settings.quality.width}x{settings.quality.height}",
        "",
    ]

    # Group the schedule into contiguous runs of the same image slot.
    runs = []
    for spec in frame_schedule(count, settings):
        if runs and runs[-1]["index"] == spec.image_index and spec.frame_in_image != 0:
            run = runs[-1]
        else:
            run = {"index": spec.image_index, "start": spec.frame, "window": None}
            runs.append(run)
        run["end"] = spec.frame
        if spec.in_transition and run["window"] is None:
            run["window"] = (spec.frame, spec.next_index)

    for run in runs:
        name = Path(images[run["index"]]).name
        line = f"  [{run['index']:2d}] {name:<24} frames {run['start']:5d}-{run['end']:<5d}"
        if run["window"] is not None:
            start, nxt = run["window"]
            line += f"  {settings.transition.value} {start}-{run['end']} → [{nxt}]"
        lines.append(line)
    return lines


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Print the frame timeline of a reel manifest.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML reel manifest",
    )
    parser.add_argument(
        "--frames", action="store_true",
        help="List every frame with its image, progress and next image",
    )
    args = parser.parse_args(args)

    config = load_reel_manifest(args.manifest)
    for line in describe_plan(config):
        print(line)

    if args.frames:
        print()
        for spec in frame_schedule(len(config["images"]), config["settings"]):
            nxt = f" → [{spec.next_index}] p={spec.progress:.3f}" if spec.in_transition else ""
            print(f"  {spec.frame:5d}  [{spec.image_index:2d}]{nxt}")


if __name__ == "__main__":
    main()
