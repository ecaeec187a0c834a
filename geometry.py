import math
from typing import Sequence, Tuple

import numpy as np


def normalize_x(px: float, width: float) -> float:
    return (px / width) * 2.0 - 1.0


def normalize_y(py: float, height: float) -> float:
    # Image y grows downward, device y grows upward.
    return -(py / height) * 2.0 + 1.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def smooth_toward(current: float, target: float, factor: float) -> float:
    # Closes `factor` of the remaining distance per call.
    return current + (target - current) * factor


def frame_filling_size(fov_degrees: float, depth: float, aspect: float) -> Tuple[float, float]:
    # World size of a plane at `depth` that exactly fills the view.
    height = abs(2.0 * math.tan(math.radians(fov_degrees) / 2.0) * depth)
    return height * aspect, height


def euler_matrix(rx: float, ry: float, rz: float) -> np.ndarray:
    # Intrinsic XYZ order: R = Rx @ Ry @ Rz.
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    mx = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]], dtype=np.float64)
    my = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]], dtype=np.float64)
    mz = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]], dtype=np.float64)
    return mx @ my @ mz


def compose_transform(
    position: Sequence[float],
    rotation: Sequence[float] = (0.0, 0.0, 0.0),
    scale: Sequence[float] = (1.0, 1.0, 1.0),
) -> np.ndarray:
    """Build a 4x4 translate * rotate * scale matrix."""
    matrix = np.eye(4, dtype=np.float64)
    matrix[:3, :3] = euler_matrix(*rotation) @ np.diag(np.asarray(scale, dtype=np.float64))
    matrix[:3, 3] = np.asarray(position, dtype=np.float64)
    return matrix


def transform_points(matrix: np.ndarray, points: np.ndarray) -> np.ndarray:
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return points @ matrix[:3, :3].T + matrix[:3, 3]
