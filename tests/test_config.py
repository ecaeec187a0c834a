import json
import math
from pathlib import Path

import pytest

from config import AppConfig, load_config
from overlay_types import FacingMode


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "nope.json")
    assert config.anchor.smoothing == 0.6
    assert config.anchor.max_tilt == pytest.approx(math.pi / 6)
    assert config.detection.pose_every == 3
    assert config.scene.occlusion_depth == pytest.approx(-9.7)
    assert config.assets.load_timeout_seconds == 20.0
    assert Path(config.assets.mesh_left).parent == tmp_path / "assets"


def test_malformed_json_gives_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_config(path).camera == AppConfig().camera


def test_non_object_root_gives_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert load_config(path).anchor == AppConfig().anchor


def test_values_override_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "camera": {"initial_facing": "user", "metadata_timeout_seconds": 2},
                "detection": {"profile": "mobile", "pose_every": 4},
                "anchor": {"vertical_shift": 0.3, "smoothing": 7, "base_scale": "oops"},
                "scene": {"occlusion_enabled": "off"},
                "assets": {"mesh_left": "wings/l.ply"},
            }
        ),
        encoding="utf-8",
    )
    config = load_config(path)

    assert config.camera.initial_facing is FacingMode.FRONT
    assert config.camera.metadata_timeout_seconds == 2.0
    assert config.detection.profile == "mobile"
    assert config.detection.pose_every == 4
    assert config.detection.presence_every == 12
    assert config.detection.segmentation_every == 5
    assert config.anchor.vertical_shift == 0.3
    assert config.anchor.smoothing == 1.0
    assert config.anchor.base_scale == 1.8
    assert config.scene.occlusion_enabled is False
    assert config.assets.mesh_left == str(tmp_path / "wings" / "l.ply")


def test_unknown_profile_uses_desktop(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"detection": {"profile": "toaster"}}), encoding="utf-8")
    config = load_config(path)
    assert config.detection.profile == "desktop"
    assert config.detection.segmentation_every == 2
