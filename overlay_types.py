from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np


class FacingMode(Enum):
    FRONT = "front"
    REAR = "rear"

    @property
    def mirrored(self) -> bool:
        # Front (selfie) capture is shown mirrored.
        return self is FacingMode.FRONT

    def other(self) -> "FacingMode":
        return FacingMode.REAR if self is FacingMode.FRONT else FacingMode.FRONT


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    confidence: float


@dataclass(frozen=True)
class ShoulderPair:
    left: Keypoint
    right: Keypoint

    @classmethod
    def from_keypoints(
        cls, left: Optional[Keypoint], right: Optional[Keypoint], min_confidence: float = 0.4
    ) -> Optional["ShoulderPair"]:
        # A pair with only one usable shoulder is treated as absent.
        if left is None or right is None:
            return None
        if left.confidence <= min_confidence or right.confidence <= min_confidence:
            return None
        return cls(left=left, right=right)


@dataclass
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_tuple(self) -> Tuple[float, float, float]:
        return self.x, self.y, self.z


@dataclass
class AnchorTransform:
    position: Vec3 = field(default_factory=Vec3)
    tilt_x: float = 0.0
    horizontal_offset: float = 0.0
    scale: float = 1.0


@dataclass(frozen=True)
class PresenceDetection:
    score: float
    # Relative bounding box (xmin, ymin, width, height) when the detector provides one.
    box: Optional[Tuple[float, float, float, float]] = None


@dataclass
class SegmentationMask:
    # HxW float32 foreground probability in [0, 1].
    alpha: np.ndarray
    timestamp: float = 0.0

    @property
    def size(self) -> Tuple[int, int]:
        height, width = self.alpha.shape[:2]
        return width, height
