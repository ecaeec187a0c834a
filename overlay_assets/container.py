"""
Decoder for the binary point-cloud container (``.ksplat``).

Layout (all little-endian):

- optional 4-byte magic: ``b"KSP"`` followed by one version byte
- uint32 element count
- ``count`` records of 44 bytes each::

    position  3 x float32   (12 bytes)
    rotation  4 x float32   (16 bytes, quaternion)
    scale     3 x float32   (12 bytes)
    color     4 x uint8     ( 4 bytes, RGBA)

A zero or implausibly large declared count is replaced by an estimate from the
buffer size.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Optional

import numpy as np

from overlay_assets.base import ContainerFormatError, PointCloudGeometry

logger = logging.getLogger(__name__)

MAGIC = b"KSP"
RECORD_SIZE = 44
MAX_COUNT = 10_000_000

RECORD_DTYPE = np.dtype(
    [
        ("position", "<f4", (3,)),
        ("rotation", "<f4", (4,)),
        ("scale", "<f4", (3,)),
        ("color", "u1", (4,)),
    ]
)


@dataclass
class SplatData:
    # Flat arrays: positions/scales hold 3 values per element, colors/rotations 4.
    positions: np.ndarray
    colors: np.ndarray
    scales: np.ndarray
    rotations: np.ndarray
    count: int
    version: Optional[int] = None

    def to_geometry(self) -> PointCloudGeometry:
        return PointCloudGeometry(
            positions=self.positions.reshape(-1, 3),
            colors=self.colors.reshape(-1, 4),
            scales=self.scales.reshape(-1, 3),
            rotations=self.rotations.reshape(-1, 4),
        )


def decode_container(data: bytes) -> SplatData:
    if len(data) < 4:
        raise ContainerFormatError(f"file too small to be a point-cloud container ({len(data)} bytes)")

    version: Optional[int] = None
    if data[:3] == MAGIC:
        version = data[3]
        if len(data) < 8:
            raise ContainerFormatError(f"truncated header: {len(data)} bytes")
        (count,) = struct.unpack_from("<I", data, 4)
        offset = 8
    else:
        (count,) = struct.unpack_from("<I", data, 0)
        offset = 4

    if count == 0 or count > MAX_COUNT:
        estimated = (len(data) - offset) // RECORD_SIZE
        if 0 < estimated <= MAX_COUNT:
            logger.warning("[container] declared count %d invalid, using estimated count %d", count, estimated)
            count = estimated
        else:
            raise ContainerFormatError(f"invalid element count {count}; file may be corrupted or the wrong format")

    expected = offset + count * RECORD_SIZE
    if len(data) < expected:
        raise ContainerFormatError(f"expected {expected} bytes for {count} elements, got {len(data)}")

    records = np.frombuffer(data, dtype=RECORD_DTYPE, count=count, offset=offset)
    colors = records["color"].copy()
    # A zero alpha byte reads as "absent" and becomes opaque.
    alpha = colors[:, 3]
    alpha[alpha == 0] = 255

    return SplatData(
        positions=records["position"].astype(np.float32).reshape(-1),
        colors=colors.reshape(-1),
        scales=records["scale"].astype(np.float32).reshape(-1),
        rotations=records["rotation"].astype(np.float32).reshape(-1),
        count=int(count),
        version=version,
    )


def encode_container(splat: SplatData, version: Optional[int] = 1) -> bytes:
    """Inverse of :func:`decode_container`. Pass ``version=None`` for a headerless file."""
    records = np.zeros(splat.count, dtype=RECORD_DTYPE)
    records["position"] = np.asarray(splat.positions, dtype=np.float32).reshape(-1, 3)
    records["rotation"] = np.asarray(splat.rotations, dtype=np.float32).reshape(-1, 4)
    records["scale"] = np.asarray(splat.scales, dtype=np.float32).reshape(-1, 3)
    records["color"] = np.asarray(splat.colors, dtype=np.uint8).reshape(-1, 4)
    header = b"" if version is None else MAGIC + bytes([version & 0xFF])
    return header + struct.pack("<I", splat.count) + records.tobytes()
