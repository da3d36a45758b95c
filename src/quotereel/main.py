"""Subcommand dispatcher for quotereel.

Usage:
    quotereel render   --manifest reel.yaml --output-dir out/
    quotereel plan     --manifest reel.yaml
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="quotereel",
        description="Render quote reels: image sequences with a quote overlay, encoded to video.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("render", help="Render a reel from a YAML manifest")
    subparsers.add_parser("plan", help="Print the frame timeline of a reel manifest")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        # No subcommand given at all — show help and exit with error.
        parser.print_help()
        sys.exit(1)

    if parsed.command == "render":
        from .cli import main as render_main
        render_main(remaining)
    elif parsed.command == "plan":
        from .plan_cli import main as plan_main
        plan_main(remaining)


if __name__ == "__main__":
    main()
