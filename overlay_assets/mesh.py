import logging
from pathlib import Path
from typing import Tuple

import numpy as np
import trimesh

from overlay_assets.base import AssetLoadError, Geometry, PointCloudGeometry, TriangleGeometry

logger = logging.getLogger(__name__)

# Splat size given to vertex-only PLY files, in asset units.
DEFAULT_POINT_SCALE = 0.01


def _from_trimesh(mesh: trimesh.Trimesh) -> TriangleGeometry:
    face_colors = None
    if mesh.visual is not None and mesh.visual.kind in ("face", "vertex"):
        face_colors = np.asarray(mesh.visual.face_colors)[:, :3].astype(np.uint8)
    return TriangleGeometry(
        vertices=np.asarray(mesh.vertices, dtype=np.float64),
        faces=np.asarray(mesh.faces, dtype=np.int64),
        face_colors=face_colors,
    )


def _from_point_cloud(cloud: trimesh.PointCloud) -> PointCloudGeometry:
    positions = np.asarray(cloud.vertices, dtype=np.float32)
    count = positions.shape[0]
    colors = np.asarray(cloud.colors, dtype=np.uint8) if len(cloud.colors) == count else None
    if colors is None or colors.shape[1] != 4:
        colors = np.full((count, 4), 255, dtype=np.uint8)
    rotations = np.zeros((count, 4), dtype=np.float32)
    rotations[:, 3] = 1.0
    return PointCloudGeometry(
        positions=positions,
        colors=colors,
        scales=np.full((count, 3), DEFAULT_POINT_SCALE, dtype=np.float32),
        rotations=rotations,
    )


def read_mesh(path: Path) -> Geometry:
    try:
        loaded = trimesh.load(str(path))
    except Exception as e:
        raise AssetLoadError(f"could not parse mesh {path}: {e}") from e

    if isinstance(loaded, trimesh.Scene):
        meshes = [g for g in loaded.geometry.values() if isinstance(g, trimesh.Trimesh)]
        if not meshes:
            clouds = [g for g in loaded.geometry.values() if isinstance(g, trimesh.PointCloud)]
            if not clouds:
                raise AssetLoadError(f"mesh file {path} contains no geometry")
            loaded = clouds[0]
        else:
            loaded = trimesh.util.concatenate(meshes)

    if isinstance(loaded, trimesh.Trimesh) and len(loaded.faces) > 0:
        geometry: Geometry = _from_trimesh(loaded)
    elif isinstance(loaded, trimesh.Trimesh):
        geometry = _from_point_cloud(trimesh.PointCloud(loaded.vertices))
    elif isinstance(loaded, trimesh.PointCloud):
        geometry = _from_point_cloud(loaded)
    else:
        raise AssetLoadError(f"unsupported geometry {type(loaded).__name__} in {path}")

    if isinstance(geometry, TriangleGeometry) and geometry.vertices.shape[0] == 0:
        raise AssetLoadError(f"mesh file {path} has no vertices")
    if isinstance(geometry, PointCloudGeometry) and geometry.count == 0:
        raise AssetLoadError(f"mesh file {path} has no vertices")
    return geometry


def load_mesh_pair(left_path: Path, right_path: Path) -> Tuple[Geometry, Geometry]:
    for side, path in (("left", left_path), ("right", right_path)):
        if not Path(path).is_file():
            raise AssetLoadError(f"{side} mesh file not found: {path}")
    left = read_mesh(left_path)
    right = read_mesh(right_path)
    logger.info("[assets] loaded mesh wings from %s and %s", left_path, right_path)
    return left, right
