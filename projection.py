import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass
class PerspectiveCamera:
    """Pinhole camera at the origin looking down -Z, +Y up."""

    fov_degrees: float = 65.0
    aspect: float = 16.0 / 9.0
    near: float = 0.01
    far: float = 100.0

    @property
    def focal(self) -> float:
        return 1.0 / math.tan(math.radians(self.fov_degrees) / 2.0)

    def project(self, points: np.ndarray, viewport: Tuple[int, int]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Project (N, 3) points to pixel coordinates.

        Returns (xy, depth, valid) where depth is the distance along the view
        axis and valid marks points between the near and far planes.
        """
        width, height = viewport
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        depth = -points[:, 2]
        valid = (depth > self.near) & (depth < self.far)
        safe = np.where(valid, depth, 1.0)
        ndc_x = (self.focal / self.aspect) * points[:, 0] / safe
        ndc_y = self.focal * points[:, 1] / safe
        xy = np.empty((points.shape[0], 2), dtype=np.float64)
        xy[:, 0] = (ndc_x + 1.0) * 0.5 * width
        xy[:, 1] = (1.0 - ndc_y) * 0.5 * height
        return xy, depth, valid

    def plane_rect(
        self, size: Tuple[float, float], z: float, viewport: Tuple[int, int]
    ) -> Tuple[int, int, int, int]:
        # Screen rectangle (x0, y0, x1, y1) of a camera-facing plane centred on the view axis.
        half_w, half_h = size[0] / 2.0, size[1] / 2.0
        corners = np.array([[-half_w, half_h, z], [half_w, -half_h, z]], dtype=np.float64)
        xy, _, _ = self.project(corners, viewport)
        x0, y0 = xy[0]
        x1, y1 = xy[1]
        return int(round(x0)), int(round(y0)), int(round(x1)), int(round(y1))


@dataclass
class RenderTarget:
    width: int
    height: int
    color: np.ndarray = field(init=False)
    depth: np.ndarray = field(init=False)

    def __post_init__(self) -> None:
        self.color = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        self.depth = np.full((self.height, self.width), np.inf, dtype=np.float32)

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def clear(self) -> None:
        self.color.fill(0)
        self.depth.fill(np.inf)


def clip_rect(
    rect: Tuple[int, int, int, int], width: int, height: int
) -> Optional[Tuple[Tuple[int, int, int, int], Tuple[int, int, int, int]]]:
    """
    Clip a screen rect to the viewport.

    Returns ((dst_x0, dst_y0, dst_x1, dst_y1), (src_x0, src_y0, src_x1, src_y1))
    where src is relative to the unclipped rect, or None if nothing is visible.
    """
    x0, y0, x1, y1 = rect
    dx0, dy0 = max(0, x0), max(0, y0)
    dx1, dy1 = min(width, x1), min(height, y1)
    if dx1 <= dx0 or dy1 <= dy0:
        return None
    return (dx0, dy0, dx1, dy1), (dx0 - x0, dy0 - y0, dx1 - x0, dy1 - y0)
