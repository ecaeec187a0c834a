import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from geometry import frame_filling_size
from overlay_types import FacingMode, SegmentationMask
from projection import PerspectiveCamera, RenderTarget, clip_rect

logger = logging.getLogger(__name__)


class OcclusionSurface:
    """
    Depth-only surface driven by the body mask.

    Texels at or above the threshold write the surface depth (no colour), so
    overlay fragments drawn afterwards behind it fail the depth test. Texels
    below the threshold are discarded and leave the depth buffer untouched.
    """

    render_order = 1

    def __init__(self, depth_z: float = -9.7, threshold: float = 0.5, enabled: bool = True):
        self.depth_z = depth_z
        self.threshold = threshold
        self.enabled = enabled
        self.size: Tuple[float, float] = (1.0, 1.0)
        self.flip_x = False
        self._mask: Optional[np.ndarray] = None

    @property
    def has_mask(self) -> bool:
        return self._mask is not None

    def fit(self, camera: PerspectiveCamera) -> None:
        # Same frame-filling computation as the video plane, at this surface's depth.
        self.size = frame_filling_size(camera.fov_degrees, self.depth_z, camera.aspect)

    def update_mask(self, mask: SegmentationMask, facing: FacingMode) -> None:
        alpha = np.asarray(mask.alpha, dtype=np.float32)
        if alpha.ndim == 3:
            alpha = alpha[..., -1]
        if self._mask is None or self._mask.shape != alpha.shape:
            logger.debug("[occlusion] mask texture resized to %dx%d", alpha.shape[1], alpha.shape[0])
        self._mask = alpha.copy()
        self.flip_x = facing.mirrored

    def sample(self, rect_size: Tuple[int, int]) -> Optional[np.ndarray]:
        # Mask resampled to the surface's on-screen size, mirrored for front capture.
        if self._mask is None:
            return None
        width, height = rect_size
        sampled = cv2.resize(self._mask, (width, height), interpolation=cv2.INTER_LINEAR)
        if self.flip_x:
            sampled = sampled[:, ::-1]
        return sampled

    def draw(self, target: RenderTarget, camera: PerspectiveCamera) -> None:
        if not self.enabled or self._mask is None:
            return
        rect = camera.plane_rect(self.size, self.depth_z, target.size)
        rect_w, rect_h = rect[2] - rect[0], rect[3] - rect[1]
        if rect_w <= 0 or rect_h <= 0:
            return
        clipped = clip_rect(rect, target.width, target.height)
        if clipped is None:
            return
        (dx0, dy0, dx1, dy1), (sx0, sy0, sx1, sy1) = clipped

        sampled = self.sample((rect_w, rect_h))[sy0:sy1, sx0:sx1]
        keep = sampled >= self.threshold
        depth_roi = target.depth[dy0:dy1, dx0:dx1]
        surface_depth = np.float32(-self.depth_z)
        write = keep & (surface_depth < depth_roi)
        depth_roi[write] = surface_depth
