import logging
from typing import List, Optional, Tuple

import cv2
import numpy as np

from config import SceneConfig
from geometry import compose_transform, frame_filling_size, transform_points
from occlusion import OcclusionSurface
from overlay_assets.base import OverlayAsset, PointCloudGeometry, TriangleGeometry
from overlay_types import AnchorTransform, FacingMode, SegmentationMask
from projection import PerspectiveCamera, RenderTarget, clip_rect

logger = logging.getLogger(__name__)

# gl_PointSize-style constant: pixel diameter = POINT_SIZE_SCALE * mean scale / distance.
POINT_SIZE_SCALE = 1000.0
MAX_POINT_RADIUS = 32


class VideoPlane:
    render_order = 0

    def __init__(self, depth_z: float = -10.0):
        self.depth_z = depth_z
        self.size: Tuple[float, float] = (1.0, 1.0)
        self.frame: Optional[np.ndarray] = None
        self.mirrored = False

    def fit(self, camera: PerspectiveCamera) -> None:
        self.size = frame_filling_size(camera.fov_degrees, self.depth_z, camera.aspect)

    def set_frame(self, frame: np.ndarray, facing: FacingMode) -> None:
        self.frame = frame
        self.mirrored = facing.mirrored

    def draw(self, target: RenderTarget, camera: PerspectiveCamera) -> None:
        # Background: no depth test, no depth write.
        if self.frame is None:
            return
        rect = camera.plane_rect(self.size, self.depth_z, target.size)
        rect_w, rect_h = rect[2] - rect[0], rect[3] - rect[1]
        clipped = clip_rect(rect, target.width, target.height)
        if clipped is None or rect_w <= 0 or rect_h <= 0:
            return
        (dx0, dy0, dx1, dy1), (sx0, sy0, sx1, sy1) = clipped
        image = cv2.resize(self.frame, (rect_w, rect_h), interpolation=cv2.INTER_LINEAR)
        if self.mirrored:
            image = cv2.flip(image, 1)
        target.color[dy0:dy1, dx0:dx1] = image[sy0:sy1, sx0:sx1]


def draw_triangles(
    target: RenderTarget, camera: PerspectiveCamera, matrix: np.ndarray, geometry: TriangleGeometry
) -> None:
    """Flat-coloured triangles, painter-sorted, depth-tested and depth-writing.

    Back faces are culled unless the geometry is double sided.
    """
    if geometry.faces.size == 0:
        return
    world = transform_points(matrix, geometry.vertices)
    xy, depth, valid = camera.project(world, target.size)

    faces = geometry.faces
    face_ok = valid[faces].all(axis=1)
    if not geometry.double_sided:
        a, b, c = xy[faces[:, 0]], xy[faces[:, 1]], xy[faces[:, 2]]
        # Screen y points down, so front faces have negative signed area.
        signed = (b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1]) - (c[:, 0] - a[:, 0]) * (b[:, 1] - a[:, 1])
        face_ok &= signed < 0
    face_depth = depth[faces].mean(axis=1)
    order = [i for i in np.argsort(-face_depth) if face_ok[i]]
    alpha = float(np.clip(geometry.opacity, 0.0, 1.0))
    base_color = np.array(geometry.color[::-1], dtype=np.float32)

    for i in order:
        pts = np.round(xy[faces[i]]).astype(np.int32)
        x0, y0 = pts.min(axis=0)
        x1, y1 = pts.max(axis=0) + 1
        clipped = clip_rect((int(x0), int(y0), int(x1), int(y1)), target.width, target.height)
        if clipped is None:
            continue
        (dx0, dy0, dx1, dy1), _ = clipped
        coverage = np.zeros((dy1 - dy0, dx1 - dx0), dtype=np.uint8)
        cv2.fillConvexPoly(coverage, pts - np.array([dx0, dy0], dtype=np.int32), 1)

        d = np.float32(face_depth[i])
        depth_roi = target.depth[dy0:dy1, dx0:dx1]
        passed = (coverage > 0) & (d < depth_roi)
        if not passed.any():
            continue
        if geometry.face_colors is not None:
            color = np.asarray(geometry.face_colors[i][::-1], dtype=np.float32)
        else:
            color = base_color
        color_roi = target.color[dy0:dy1, dx0:dx1]
        blended = color_roi[passed].astype(np.float32) * (1.0 - alpha) + color * alpha
        color_roi[passed] = np.clip(blended, 0, 255).astype(np.uint8)
        depth_roi[passed] = d


def draw_points(
    target: RenderTarget, camera: PerspectiveCamera, matrix: np.ndarray, geometry: PointCloudGeometry
) -> None:
    """
    Splat discs, back to front. Each pixel of a disc is depth-tested against the
    buffer; splats do not write depth.
    """
    if geometry.count == 0:
        return
    world = transform_points(matrix, geometry.positions)
    xy, depth, valid = camera.project(world, target.size)

    # Uniform part scale folded into the per-splat size.
    world_scale = float(np.mean(np.linalg.norm(matrix[:3, :3], axis=0)))
    mean_scale = np.abs(geometry.scales).mean(axis=1) * world_scale
    safe_depth = np.where(valid, depth, 1.0)
    radius = np.clip(POINT_SIZE_SCALE * mean_scale / safe_depth / 2.0, 1.0, MAX_POINT_RADIUS).astype(np.int32)

    inside = (
        valid
        & (xy[:, 0] >= -radius)
        & (xy[:, 0] < target.width + radius)
        & (xy[:, 1] >= -radius)
        & (xy[:, 1] < target.height + radius)
    )
    idx = np.nonzero(inside)[0]
    if idx.size == 0:
        return
    idx = idx[np.argsort(-depth[idx])]

    layer_color = np.zeros((target.height, target.width, 3), dtype=np.float32)
    layer_alpha = np.zeros((target.height, target.width), dtype=np.float32)
    layer_depth = np.full((target.height, target.width), np.inf, dtype=np.float32)
    centers = np.round(xy).astype(np.int32)
    colors = geometry.colors.astype(np.float32)

    for i in idx:
        center = (int(centers[i, 0]), int(centers[i, 1]))
        r = int(radius[i])
        rgba = colors[i]
        cv2.circle(layer_color, center, r, (float(rgba[2]), float(rgba[1]), float(rgba[0])), -1)
        cv2.circle(layer_alpha, center, r, float(rgba[3]) / 255.0, -1)
        cv2.circle(layer_depth, center, r, float(depth[i]), -1)

    passed = layer_depth < target.depth
    if not passed.any():
        return
    a = layer_alpha[passed][:, None]
    blended = target.color[passed].astype(np.float32) * (1.0 - a) + layer_color[passed] * a
    target.color[passed] = np.clip(blended, 0, 255).astype(np.uint8)


class OverlayGroup:
    """Parent transform for the two overlay parts."""

    render_order = 2

    def __init__(self, depth_z: float = -9.8):
        self.depth_z = depth_z
        self.position: Tuple[float, float, float] = (0.0, 0.0, depth_z)
        self.tilt_x = 0.0
        self.asset: Optional[OverlayAsset] = None

    def apply_anchor(self, anchor: AnchorTransform) -> None:
        self.position = anchor.position.as_tuple()
        self.tilt_x = anchor.tilt_x

    def matrix(self) -> np.ndarray:
        return compose_transform(self.position, (self.tilt_x, 0.0, 0.0))

    def draw(self, target: RenderTarget, camera: PerspectiveCamera) -> None:
        if self.asset is None:
            return
        parent = self.matrix()
        for part in self.asset.parts:
            if not part.visible:
                continue
            world = parent @ part.local_matrix()
            if isinstance(part.geometry, PointCloudGeometry):
                draw_points(target, camera, world, part.geometry)
            else:
                draw_triangles(target, camera, world, part.geometry)


class SceneCompositor:
    """
    Owns the background plane, the occlusion surface and the overlay group.

    Depth layout from the camera: occlusion surface, overlay, video plane.
    Draw order: video plane (0), occlusion depth pass (1), overlay (2).
    """

    def __init__(self, config: SceneConfig, viewport: Optional[Tuple[int, int]] = None):
        self.config = config
        width, height = viewport or (config.viewport_width, config.viewport_height)
        self.camera = PerspectiveCamera(config.fov_degrees, width / height, config.near, config.far)
        self.target = RenderTarget(width, height)
        self.video_plane = VideoPlane(config.video_plane_depth)
        self.occlusion = OcclusionSurface(
            depth_z=config.occlusion_depth,
            threshold=config.occlusion_threshold,
            enabled=config.occlusion_enabled,
        )
        self.overlay = OverlayGroup(config.overlay_depth)
        self._objects: List = sorted(
            [self.video_plane, self.occlusion, self.overlay], key=lambda o: o.render_order
        )
        self.resize(width, height)

    @property
    def viewport(self) -> Tuple[int, int]:
        return self.target.size

    def resize(self, width: int, height: int) -> None:
        width, height = max(1, int(width)), max(1, int(height))
        if (width, height) != self.target.size:
            self.target = RenderTarget(width, height)
        self.camera.aspect = width / height
        self.video_plane.fit(self.camera)
        self.occlusion.fit(self.camera)
        logger.debug(
            "[scene] viewport %dx%d, video plane %.3fx%.3f", width, height, *self.video_plane.size
        )

    def attach(self, asset: OverlayAsset) -> None:
        self.overlay.asset = asset

    def apply_anchor(self, anchor: AnchorTransform) -> None:
        self.overlay.apply_anchor(anchor)

    def update_mask(self, mask: SegmentationMask, facing: FacingMode) -> None:
        self.occlusion.update_mask(mask, facing)

    def render(self, frame: np.ndarray, facing: FacingMode) -> np.ndarray:
        self.video_plane.set_frame(frame, facing)
        self.target.clear()
        for obj in self._objects:
            obj.draw(self.target, self.camera)
        return self.target.color
