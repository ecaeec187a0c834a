import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from overlay_types import FacingMode

logger = logging.getLogger(__name__)


# Ticks between detector calls, per device profile.
DETECTION_PRESETS: Dict[str, Dict[str, int]] = {
    "desktop": {"pose_every": 3, "presence_every": 5, "segmentation_every": 2},
    "mobile": {"pose_every": 6, "presence_every": 12, "segmentation_every": 5},
}


@dataclass(frozen=True)
class CameraConfig:
    front_index: int = 0
    rear_index: int = 1
    width: int = 1280
    height: int = 720
    target_fps: int = 30
    initial_facing: FacingMode = FacingMode.REAR
    # Wait for the first frame before falling back to the default dimensions.
    metadata_timeout_seconds: float = 5.0
    fallback_width: int = 640
    fallback_height: int = 480

    def index_for(self, facing: FacingMode) -> int:
        return self.front_index if facing is FacingMode.FRONT else self.rear_index


@dataclass(frozen=True)
class DetectionConfig:
    profile: str = "desktop"
    pose_every: int = 3
    presence_every: int = 5
    segmentation_every: int = 2
    shoulder_min_confidence: float = 0.4
    presence_min_score: float = 0.7
    segmentation_threshold: float = 0.7
    max_workers: int = 3


@dataclass(frozen=True)
class AnchorConfig:
    smoothing: float = 0.6
    vertical_shift: float = 0.5
    shoulder_pivot_multiplier: float = 0.55
    min_horizontal_offset: float = 0.25
    max_tilt: float = math.pi / 6
    y_diff_sensitivity: float = 150.0
    base_scale: float = 1.8
    splay_angle: float = math.pi / 12
    depth_scale: float = 1.5
    stand_up_angle: float = -math.pi * 0.2
    reference_viewport_height: float = 800.0


@dataclass(frozen=True)
class SceneConfig:
    fov_degrees: float = 65.0
    near: float = 0.01
    far: float = 100.0
    viewport_width: int = 1280
    viewport_height: int = 720
    video_plane_depth: float = -10.0
    overlay_depth: float = -9.8
    # Occlusion surface sits this far in front of the overlay.
    occlusion_offset: float = 0.1
    occlusion_threshold: float = 0.5
    occlusion_enabled: bool = True

    @property
    def occlusion_depth(self) -> float:
        return self.overlay_depth + self.occlusion_offset


@dataclass(frozen=True)
class AssetConfig:
    point_cloud_left: str = str(Path("assets") / "leftwing.ksplat")
    point_cloud_right: str = str(Path("assets") / "rightwing.ksplat")
    mesh_left: str = str(Path("assets") / "leftwing.ply")
    mesh_right: str = str(Path("assets") / "rightwing.ply")
    load_timeout_seconds: float = 20.0
    point_cloud_scale: float = 1.0
    mesh_scale: float = 1.0
    primitive_scale: float = 1.0


@dataclass(frozen=True)
class AppConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    anchor: AnchorConfig = field(default_factory=AnchorConfig)
    scene: SceneConfig = field(default_factory=SceneConfig)
    assets: AssetConfig = field(default_factory=AssetConfig)


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def get_default_config_path() -> Path:
    return _repo_root() / "config.json"


def _deep_get(d: Dict[str, Any], keys: List[str], default: Any = None) -> Any:
    cur: Any = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
    return cur if cur is not None else default


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _as_float(v: Any, default: float) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return float(default)


def _as_bool(v: Any, default: bool) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(default)


def _as_str(v: Any, default: str = "") -> str:
    return str(v) if v is not None else str(default)


def _as_facing(v: Any, default: FacingMode) -> FacingMode:
    if isinstance(v, str):
        value = v.strip().lower()
        # Browser-style names are accepted too.
        if value in ("front", "user"):
            return FacingMode.FRONT
        if value in ("rear", "environment", "back"):
            return FacingMode.REAR
    return default


def _as_path(v: Any, default: str, base_dir: Path) -> str:
    p = Path(_as_str(v, default)).expanduser()
    if not p.is_absolute():
        p = base_dir / p
    return str(p)


def _parse_camera(raw: Dict[str, Any]) -> CameraConfig:
    d = CameraConfig()
    return CameraConfig(
        front_index=_as_int(_deep_get(raw, ["camera", "front_index"], d.front_index), d.front_index),
        rear_index=_as_int(_deep_get(raw, ["camera", "rear_index"], d.rear_index), d.rear_index),
        width=max(1, _as_int(_deep_get(raw, ["camera", "width"], d.width), d.width)),
        height=max(1, _as_int(_deep_get(raw, ["camera", "height"], d.height), d.height)),
        target_fps=max(0, _as_int(_deep_get(raw, ["camera", "target_fps"], d.target_fps), d.target_fps)),
        initial_facing=_as_facing(_deep_get(raw, ["camera", "initial_facing"]), d.initial_facing),
        metadata_timeout_seconds=max(
            0.0,
            _as_float(
                _deep_get(raw, ["camera", "metadata_timeout_seconds"], d.metadata_timeout_seconds),
                d.metadata_timeout_seconds,
            ),
        ),
        fallback_width=max(1, _as_int(_deep_get(raw, ["camera", "fallback_width"], d.fallback_width), d.fallback_width)),
        fallback_height=max(
            1, _as_int(_deep_get(raw, ["camera", "fallback_height"], d.fallback_height), d.fallback_height)
        ),
    )


def _parse_detection(raw: Dict[str, Any]) -> DetectionConfig:
    d = DetectionConfig()
    profile = _as_str(_deep_get(raw, ["detection", "profile"], d.profile), d.profile).strip().lower()
    if profile not in DETECTION_PRESETS:
        logger.warning("[config] unknown detection profile %r, using %r", profile, d.profile)
        profile = d.profile
    preset = DETECTION_PRESETS[profile]

    def _every(key: str) -> int:
        # Explicit values win over the profile preset.
        return max(1, _as_int(_deep_get(raw, ["detection", key], preset[key]), preset[key]))

    return DetectionConfig(
        profile=profile,
        pose_every=_every("pose_every"),
        presence_every=_every("presence_every"),
        segmentation_every=_every("segmentation_every"),
        shoulder_min_confidence=_as_float(
            _deep_get(raw, ["detection", "shoulder_min_confidence"], d.shoulder_min_confidence),
            d.shoulder_min_confidence,
        ),
        presence_min_score=_as_float(
            _deep_get(raw, ["detection", "presence_min_score"], d.presence_min_score), d.presence_min_score
        ),
        segmentation_threshold=_as_float(
            _deep_get(raw, ["detection", "segmentation_threshold"], d.segmentation_threshold),
            d.segmentation_threshold,
        ),
        max_workers=max(1, _as_int(_deep_get(raw, ["detection", "max_workers"], d.max_workers), d.max_workers)),
    )


def _parse_anchor(raw: Dict[str, Any]) -> AnchorConfig:
    d = AnchorConfig()
    values = {}
    for name in (
        "smoothing",
        "vertical_shift",
        "shoulder_pivot_multiplier",
        "min_horizontal_offset",
        "max_tilt",
        "y_diff_sensitivity",
        "base_scale",
        "splay_angle",
        "depth_scale",
        "stand_up_angle",
        "reference_viewport_height",
    ):
        default = getattr(d, name)
        values[name] = _as_float(_deep_get(raw, ["anchor", name], default), default)
    values["smoothing"] = min(1.0, max(0.0, values["smoothing"]))
    if values["y_diff_sensitivity"] <= 0:
        values["y_diff_sensitivity"] = d.y_diff_sensitivity
    if values["reference_viewport_height"] <= 0:
        values["reference_viewport_height"] = d.reference_viewport_height
    return AnchorConfig(**values)


def _parse_scene(raw: Dict[str, Any]) -> SceneConfig:
    d = SceneConfig()
    return SceneConfig(
        fov_degrees=_as_float(_deep_get(raw, ["scene", "fov_degrees"], d.fov_degrees), d.fov_degrees),
        near=_as_float(_deep_get(raw, ["scene", "near"], d.near), d.near),
        far=_as_float(_deep_get(raw, ["scene", "far"], d.far), d.far),
        viewport_width=max(1, _as_int(_deep_get(raw, ["scene", "viewport_width"], d.viewport_width), d.viewport_width)),
        viewport_height=max(
            1, _as_int(_deep_get(raw, ["scene", "viewport_height"], d.viewport_height), d.viewport_height)
        ),
        video_plane_depth=_as_float(
            _deep_get(raw, ["scene", "video_plane_depth"], d.video_plane_depth), d.video_plane_depth
        ),
        overlay_depth=_as_float(_deep_get(raw, ["scene", "overlay_depth"], d.overlay_depth), d.overlay_depth),
        occlusion_offset=_as_float(
            _deep_get(raw, ["scene", "occlusion_offset"], d.occlusion_offset), d.occlusion_offset
        ),
        occlusion_threshold=_as_float(
            _deep_get(raw, ["scene", "occlusion_threshold"], d.occlusion_threshold), d.occlusion_threshold
        ),
        occlusion_enabled=_as_bool(
            _deep_get(raw, ["scene", "occlusion_enabled"], d.occlusion_enabled), d.occlusion_enabled
        ),
    )


def _parse_assets(raw: Dict[str, Any], base_dir: Path) -> AssetConfig:
    d = AssetConfig()
    return AssetConfig(
        point_cloud_left=_as_path(_deep_get(raw, ["assets", "point_cloud_left"]), d.point_cloud_left, base_dir),
        point_cloud_right=_as_path(_deep_get(raw, ["assets", "point_cloud_right"]), d.point_cloud_right, base_dir),
        mesh_left=_as_path(_deep_get(raw, ["assets", "mesh_left"]), d.mesh_left, base_dir),
        mesh_right=_as_path(_deep_get(raw, ["assets", "mesh_right"]), d.mesh_right, base_dir),
        load_timeout_seconds=max(
            0.0,
            _as_float(_deep_get(raw, ["assets", "load_timeout_seconds"], d.load_timeout_seconds), d.load_timeout_seconds),
        ),
        point_cloud_scale=_as_float(
            _deep_get(raw, ["assets", "point_cloud_scale"], d.point_cloud_scale), d.point_cloud_scale
        ),
        mesh_scale=_as_float(_deep_get(raw, ["assets", "mesh_scale"], d.mesh_scale), d.mesh_scale),
        primitive_scale=_as_float(
            _deep_get(raw, ["assets", "primitive_scale"], d.primitive_scale), d.primitive_scale
        ),
    )


def default_config(base_dir: Optional[Path] = None) -> AppConfig:
    # Asset paths resolve against the code directory when no file is given.
    return _from_raw({}, base_dir or _repo_root())


def _from_raw(raw: Dict[str, Any], base_dir: Path) -> AppConfig:
    return AppConfig(
        camera=_parse_camera(raw),
        detection=_parse_detection(raw),
        anchor=_parse_anchor(raw),
        scene=_parse_scene(raw),
        assets=_parse_assets(raw, base_dir),
    )


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    p = Path(path).expanduser().resolve() if path else get_default_config_path()
    if not p.exists():
        if path:
            logger.warning("[config] %s not found, using defaults", p)
        return default_config(p.parent)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        # Malformed config keeps the app running on defaults.
        logger.warning("[config] could not read %s (%s), using defaults", p, e)
        return default_config(p.parent)

    if not isinstance(raw, dict):
        logger.warning("[config] %s is not a JSON object, using defaults", p)
        return default_config(p.parent)
    return _from_raw(raw, p.parent)
