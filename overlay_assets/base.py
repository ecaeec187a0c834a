from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from geometry import compose_transform


class AssetLoadError(Exception):
    """A tier could not produce both overlay parts."""


class ContainerFormatError(AssetLoadError):
    """Bytes are not a decodable point-cloud container."""


class AssetTier(Enum):
    POINT_CLOUD = "point_cloud"
    MESH = "mesh"
    PRIMITIVE = "primitive"


@dataclass
class PointCloudGeometry:
    positions: np.ndarray  # (N, 3) float32
    colors: np.ndarray  # (N, 4) uint8 RGBA
    scales: np.ndarray  # (N, 3) float32
    rotations: np.ndarray  # (N, 4) float32 quaternion

    @property
    def count(self) -> int:
        return int(self.positions.shape[0])


@dataclass
class TriangleGeometry:
    vertices: np.ndarray  # (N, 3) float
    faces: np.ndarray  # (M, 3) int
    color: Tuple[int, int, int] = (255, 255, 255)  # RGB
    opacity: float = 1.0
    double_sided: bool = False
    # Optional per-face RGB; overrides `color`.
    face_colors: Optional[np.ndarray] = None


Geometry = Union[PointCloudGeometry, TriangleGeometry]


@dataclass
class OverlayPart:
    name: str
    geometry: Geometry
    visible: bool = False
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)

    def local_matrix(self) -> np.ndarray:
        return compose_transform(self.position, self.rotation, self.scale)


@dataclass
class OverlayAsset:
    tier: AssetTier
    left: OverlayPart
    right: OverlayPart
    # Tier-specific multiplier applied on top of the anchor scale.
    part_scale: float = 1.0
    source: str = ""

    @property
    def label(self) -> str:
        if not self.source:
            return self.tier.value
        return f"{self.tier.value} ({Path(self.source).name})"

    @property
    def parts(self) -> Tuple[OverlayPart, OverlayPart]:
        return self.left, self.right

    def set_visible(self, visible: bool) -> None:
        self.left.visible = visible
        self.right.visible = visible
