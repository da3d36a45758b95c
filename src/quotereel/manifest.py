"""Reel manifest loader — a whole quote reel declared in YAML.

Reel manifest schema:
  paths:
    photos: "/path/to/photos"
  quote:
    text: "Stay hungry, stay foolish."
    author: "Steve Jobs"          # optional
  images:                         # 2..20 entries, in display order
    - "${photos}/a.jpg"
    - "${photos}/b.jpg"
  settings:                       # all optional
    seconds_per_image: 1          # > 0
    transition: fade              # default | fade | slide | zoom | cut (none)
    quality: 4k                   # 1080p | 4k
    fps: 30
  text:                           # all optional
    show_quote: true
    show_author: true
    alignment: center             # left | center | right
    position: center              # top | center | bottom
    font_scale: 100               # percent
    color: "#ffffff"
    shadow: true
    offset_x: 0                   # -50..50, percent of width
    offset_y: 0                   # -50..50, percent of height
    bold: false
    italic: false
    underline: false
    watermark: QuoteSwipe         # "" hides the watermark pill
  output:                         # all optional
    backend: streaming            # streaming | batch
    pacing: true                  # false submits frames as fast as possible
"""

from pathlib import Path

import yaml

from .common import parse_hex_color, resolve_path_vars
from .encoders import BACKENDS
from .settings import MAX_IMAGES, MIN_IMAGES, Quote, ReelSettings, TextSettings


VALID_SETTINGS_KEYS = {"seconds_per_image", "transition", "quality", "fps"}

VALID_TEXT_KEYS = {
    "show_quote", "show_author", "alignment", "position", "font_scale", "color",
    "shadow", "offset_x", "offset_y", "bold", "italic", "underline", "watermark",
}

VALID_OUTPUT_KEYS = {"backend", "pacing"}


def _check_keys(section: str, values: dict, valid: set) -> None:
    if not isinstance(values, dict):
        raise ValueError(f"Reel manifest: '{section}' must be a mapping, got {type(values).__name__}")
    unknown = set(values) - valid
    if unknown:
        raise ValueError(
            f"Reel manifest: unknown {section} field(s) {sorted(unknown)}. "
            f"Valid: {sorted(valid)}"
        )


def load_reel_manifest(manifest_path: str | Path) -> dict:
    """Load, validate, and normalize a reel manifest.

    Processing pipeline:
      1. Parse YAML.
      2. Validate the quote (text required, author optional).
      3. Resolve ${path} variables in image paths; check the image count.
      4. Build ReelSettings and TextSettings, prefixing their validation
         errors with the manifest section they came from.
      5. Apply output defaults (streaming backend, pacing on).

    Args:
        manifest_path: Path to the YAML reel manifest.

    Returns:
        Config dict with keys ``quote`` (Quote), ``images`` (list of path
        strings), ``settings`` (ReelSettings), ``text`` (TextSettings) and
        ``output`` (dict).

    Raises:
        ValueError: Missing/invalid fields.
        FileNotFoundError: Missing manifest file.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError("Reel manifest: expected a mapping at the top level")

    # Quote.
    if "quote" not in raw:
        raise ValueError("Reel manifest: missing required 'quote' section")
    quote_raw = raw["quote"]
    if isinstance(quote_raw, str):
        quote_raw = {"text": quote_raw}
    _check_keys("quote", quote_raw, {"text", "author"})
    text_value = quote_raw.get("text")
    if not isinstance(text_value, str) or not text_value.strip():
        raise ValueError("Reel manifest: quote.text is required and must be non-empty")
    author = quote_raw.get("author") or ""
    if not isinstance(author, str):
        raise ValueError(f"Reel manifest: quote.author must be a string, got {author!r}")
    config = {"quote": Quote(text_value.strip(), author.strip())}

    # Path variables for ${name} substitution.
    paths = raw.get("paths", {}) or {}

    # Images — resolve paths, check bounds.
    images = raw.get("images") or []
    if not isinstance(images, list):
        raise ValueError("Reel manifest: 'images' must be a list of paths")
    resolved = []
    for i, image in enumerate(images):
        if not isinstance(image, str):
            raise ValueError(f"Reel image {i}: expected a path string, got {image!r}")
        resolved.append(resolve_path_vars(image, paths))
    if not MIN_IMAGES <= len(resolved) <= MAX_IMAGES:
        raise ValueError(
            f"Reel manifest: {len(resolved)} image(s) given, "
            f"a reel needs {MIN_IMAGES} to {MAX_IMAGES}"
        )
    config["images"] = resolved

    # Reel settings.
    settings_raw = raw.get("settings") or {}
    _check_keys("settings", settings_raw, VALID_SETTINGS_KEYS)
    try:
        config["settings"] = ReelSettings(**settings_raw)
    except ValueError as e:
        raise ValueError(f"Reel manifest settings: {e}") from e

    # Text styling — validate the color here so the message names the field.
    text_raw = dict(raw.get("text") or {})
    _check_keys("text", text_raw, VALID_TEXT_KEYS)
    if "color" in text_raw:
        try:
            parse_hex_color(str(text_raw["color"]))
        except ValueError as e:
            raise ValueError(f"Reel manifest text.color: {e}") from e
    if "watermark" in text_raw and text_raw["watermark"] is None:
        text_raw["watermark"] = ""
    try:
        config["text"] = TextSettings(**text_raw)
    except ValueError as e:
        raise ValueError(f"Reel manifest text: {e}") from e

    # Output options.
    output = dict(raw.get("output") or {})
    _check_keys("output", output, VALID_OUTPUT_KEYS)
    output.setdefault("backend", "streaming")
    output.setdefault("pacing", True)
    if output["backend"] not in BACKENDS:
        raise ValueError(
            f"Reel manifest: invalid output.backend '{output['backend']}'. "
            f"Valid: {sorted(BACKENDS)}"
        )
    if not isinstance(output["pacing"], bool):
        raise ValueError(f"Reel manifest: output.pacing must be true/false, got {output['pacing']!r}")
    config["output"] = output

    return config


def validate_paths(config: dict) -> None:
    """Check that all image paths exist on disk.

    Raises:
        FileNotFoundError: Lists all missing files.
    """
    missing = [p for p in config["images"] if not Path(p).exists()]

    if missing:
        msg = f"Missing {len(missing)} image file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)
