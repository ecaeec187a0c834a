from typing import Tuple

import numpy as np

from overlay_assets.base import TriangleGeometry

BOX_SIZE = (0.5, 0.8, 0.08)
BOX_COLOR = (0x00, 0xCC, 0xFF)
BOX_OPACITY = 0.8

# Two triangles per face of the unit cube, counter-clockwise from outside.
_CUBE_FACES = np.array(
    [
        [0, 2, 1], [0, 3, 2],  # -z
        [4, 5, 6], [4, 6, 7],  # +z
        [0, 1, 5], [0, 5, 4],  # -y
        [3, 7, 6], [3, 6, 2],  # +y
        [0, 4, 7], [0, 7, 3],  # -x
        [1, 2, 6], [1, 6, 5],  # +x
    ],
    dtype=np.int64,
)


def box_geometry(
    size: Tuple[float, float, float] = BOX_SIZE,
    color: Tuple[int, int, int] = BOX_COLOR,
    opacity: float = BOX_OPACITY,
) -> TriangleGeometry:
    hx, hy, hz = (s / 2.0 for s in size)
    vertices = np.array(
        [
            [-hx, -hy, -hz],
            [hx, -hy, -hz],
            [hx, hy, -hz],
            [-hx, hy, -hz],
            [-hx, -hy, hz],
            [hx, -hy, hz],
            [hx, hy, hz],
            [-hx, hy, hz],
        ],
        dtype=np.float64,
    )
    return TriangleGeometry(vertices=vertices, faces=_CUBE_FACES.copy(), color=color, opacity=opacity)


def box_pair() -> Tuple[TriangleGeometry, TriangleGeometry]:
    return box_geometry(), box_geometry()
