import math
from typing import Tuple

from config import AnchorConfig
from geometry import clamp, normalize_x, normalize_y, smooth_toward
from overlay_assets.base import OverlayAsset, OverlayPart
from overlay_types import AnchorTransform, FacingMode, ShoulderPair, Vec3


def aspect_scale_band(aspect: float) -> float:
    if aspect < 1.0:
        return 0.85
    if aspect > 1.7:
        return 1.1
    return 1.0


class AnchorSmoother:
    """
    Turns shoulder keypoints into a smoothed anchor transform.

    Position and tilt are smoothed exponentially; offset and scale follow the
    latest shoulders directly. Without a pair the transform simply holds.
    """

    def __init__(self, config: AnchorConfig, depth: float = -9.8):
        self.config = config
        self.depth = depth
        self.transform = AnchorTransform()

    def reset(self) -> None:
        self.transform = AnchorTransform()

    def target_position(self, pair: ShoulderPair, frame_size: Tuple[int, int], facing: FacingMode) -> Vec3:
        width, height = frame_size
        mid_x = (pair.left.x + pair.right.x) / 2.0
        mid_y = (pair.left.y + pair.right.y) / 2.0
        x = normalize_x(mid_x, width)
        y = normalize_y(mid_y, height)
        if facing.mirrored:
            x = -x
        return Vec3(x, y - self.config.vertical_shift, self.depth)

    def target_tilt(self, pair: ShoulderPair, facing: FacingMode) -> float:
        cfg = self.config
        y_diff = pair.left.y - pair.right.y
        tilt = clamp((y_diff / cfg.y_diff_sensitivity) * cfg.max_tilt, -cfg.max_tilt, cfg.max_tilt)
        return -tilt if facing.mirrored else tilt

    def horizontal_offset(self, pair: ShoulderPair, frame_width: int, facing: FacingMode) -> float:
        cfg = self.config
        left = normalize_x(pair.left.x, frame_width)
        right = normalize_x(pair.right.x, frame_width)
        if facing.mirrored:
            left, right = -left, -right
        span = abs(right - left)
        return max((span / 2.0) * cfg.shoulder_pivot_multiplier, cfg.min_horizontal_offset)

    def overlay_scale(self, frame_size: Tuple[int, int], viewport_height: int) -> float:
        width, height = frame_size
        screen_factor = min(1.0, viewport_height / self.config.reference_viewport_height)
        return self.config.base_scale * aspect_scale_band(width / height) * screen_factor

    def update(
        self,
        pair: ShoulderPair,
        frame_size: Tuple[int, int],
        viewport_height: int,
        facing: FacingMode,
    ) -> AnchorTransform:
        factor = self.config.smoothing
        target = self.target_position(pair, frame_size, facing)
        pos = self.transform.position
        pos.x = smooth_toward(pos.x, target.x, factor)
        pos.y = smooth_toward(pos.y, target.y, factor)
        pos.z = smooth_toward(pos.z, target.z, factor)

        self.transform.tilt_x = smooth_toward(self.transform.tilt_x, self.target_tilt(pair, facing), factor)
        self.transform.horizontal_offset = self.horizontal_offset(pair, frame_size[0], facing)
        self.transform.scale = self.overlay_scale(frame_size, viewport_height)
        return self.transform

    def position_part(self, part: OverlayPart, side: str, part_scale: float = 1.0) -> None:
        cfg = self.config
        offset = self.transform.horizontal_offset
        scale = self.transform.scale * part_scale
        part.position = (offset if side == "left" else -offset, 0.0, 0.0)
        part.scale = (scale, scale, scale * cfg.depth_scale)
        # Stand the flat wing up, face the camera, splay outward.
        roll = math.pi + cfg.splay_angle
        part.rotation = (cfg.stand_up_angle, math.pi, roll if side == "left" else -roll)

    def position_asset(self, asset: OverlayAsset) -> None:
        self.position_part(asset.left, "left", asset.part_scale)
        self.position_part(asset.right, "right", asset.part_scale)
