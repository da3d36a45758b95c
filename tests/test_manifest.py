"""Tests for the reel manifest loader."""

import pytest
import yaml

from quotereel.manifest import load_reel_manifest, validate_paths
from quotereel.settings import TransitionKind


def _write_manifest(tmp_path, data):
    p = tmp_path / "reel.yaml"
    p.write_text(yaml.dump(data))
    return p


def _minimal(**overrides):
    data = {
        "paths": {"photos": "/data/photos"},
        "quote": {"text": "Stay hungry, stay foolish.", "author": "Steve Jobs"},
        "images": ["${photos}/a.jpg", "${photos}/b.jpg"],
    }
    data.update(overrides)
    return data


class TestLoadReelManifest:
    def test_minimal(self, tmp_path):
        config = load_reel_manifest(_write_manifest(tmp_path, _minimal()))
        assert config["quote"].text == "Stay hungry, stay foolish."
        assert config["quote"].author == "Steve Jobs"
        assert config["images"] == ["/data/photos/a.jpg", "/data/photos/b.jpg"]
        assert config["settings"].quality.name == "4k"
        assert config["settings"].transition is TransitionKind.DEFAULT
        assert config["text"].alignment == "center"
        assert config["output"] == {"backend": "streaming", "pacing": True}

    def test_full(self, tmp_path):
        data = _minimal(
            settings={"seconds_per_image": 0.5, "transition": "zoom", "quality": "1080p", "fps": 24},
            text={"alignment": "left", "position": "bottom", "font_scale": 120,
                  "color": "#ffcc00", "bold": True, "watermark": None},
            output={"backend": "batch", "pacing": False},
        )
        config = load_reel_manifest(_write_manifest(tmp_path, data))
        s = config["settings"]
        assert s.seconds_per_image == 0.5
        assert s.transition is TransitionKind.ZOOM
        assert s.quality.size == (1080, 1920)
        assert s.fps == 24
        t = config["text"]
        assert t.rgb == (255, 204, 0)
        assert t.bold
        assert t.watermark == ""
        assert config["output"] == {"backend": "batch", "pacing": False}

    def test_quote_shorthand(self, tmp_path):
        config = load_reel_manifest(_write_manifest(tmp_path, _minimal(quote="Just this.")))
        assert config["quote"].text == "Just this."
        assert config["quote"].author == ""

    def test_transition_none_alias(self, tmp_path):
        data = _minimal(settings={"transition": "none"})
        config = load_reel_manifest(_write_manifest(tmp_path, data))
        assert config["settings"].transition is TransitionKind.CUT

    def test_missing_quote(self, tmp_path):
        data = _minimal()
        del data["quote"]
        with pytest.raises(ValueError, match="missing required 'quote'"):
            load_reel_manifest(_write_manifest(tmp_path, data))

    def test_empty_quote_text(self, tmp_path):
        with pytest.raises(ValueError, match="quote.text"):
            load_reel_manifest(_write_manifest(tmp_path, _minimal(quote={"text": "  "})))

    def test_too_few_images(self, tmp_path):
        data = _minimal(images=["${photos}/a.jpg"])
        with pytest.raises(ValueError, match="a reel needs 2 to 20"):
            load_reel_manifest(_write_manifest(tmp_path, data))

    def test_too_many_images(self, tmp_path):
        data = _minimal(images=[f"/x/{i}.jpg" for i in range(21)])
        with pytest.raises(ValueError, match="21 image"):
            load_reel_manifest(_write_manifest(tmp_path, data))

    def test_unknown_path_var(self, tmp_path):
        data = _minimal(images=["${nope}/a.jpg", "/b.jpg"])
        with pytest.raises(ValueError, match="Unknown path variable"):
            load_reel_manifest(_write_manifest(tmp_path, data))

    def test_invalid_transition(self, tmp_path):
        data = _minimal(settings={"transition": "wipe"})
        with pytest.raises(ValueError, match="Reel manifest settings: Unknown transition"):
            load_reel_manifest(_write_manifest(tmp_path, data))

    def test_invalid_duration(self, tmp_path):
        data = _minimal(settings={"seconds_per_image": 0})
        with pytest.raises(ValueError, match="seconds_per_image"):
            load_reel_manifest(_write_manifest(tmp_path, data))

    def test_invalid_color(self, tmp_path):
        data = _minimal(text={"color": "#12"})
        with pytest.raises(ValueError, match="text.color"):
            load_reel_manifest(_write_manifest(tmp_path, data))

    def test_offset_out_of_range(self, tmp_path):
        data = _minimal(text={"offset_y": 80})
        with pytest.raises(ValueError, match="Reel manifest text: offset_y"):
            load_reel_manifest(_write_manifest(tmp_path, data))

    def test_unknown_text_field(self, tmp_path):
        data = _minimal(text={"font": "Comic Sans"})
        with pytest.raises(ValueError, match="unknown text field"):
            load_reel_manifest(_write_manifest(tmp_path, data))

    def test_invalid_backend(self, tmp_path):
        data = _minimal(output={"backend": "gpu"})
        with pytest.raises(ValueError, match="output.backend"):
            load_reel_manifest(_write_manifest(tmp_path, data))

    def test_missing_manifest_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_reel_manifest(tmp_path / "nope.yaml")


class TestValidatePaths:
    def test_all_present(self, tmp_path, image_files):
        data = _minimal(
            paths={"photos": str(image_files[0].parent)},
            images=["${photos}/photo0.png", "${photos}/photo1.png"],
        )
        validate_paths(load_reel_manifest(_write_manifest(tmp_path, data)))

    def test_reports_all_missing(self, tmp_path):
        config = load_reel_manifest(_write_manifest(tmp_path, _minimal()))
        with pytest.raises(FileNotFoundError, match="Missing 2 image file") as exc_info:
            validate_paths(config)
        assert "/data/photos/a.jpg" in str(exc_info.value)
        assert "/data/photos/b.jpg" in str(exc_info.value)
