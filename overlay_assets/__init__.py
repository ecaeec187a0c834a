from overlay_assets.base import (
    AssetLoadError,
    AssetTier,
    ContainerFormatError,
    OverlayAsset,
    OverlayPart,
    PointCloudGeometry,
    TriangleGeometry,
)
from overlay_assets.container import SplatData, decode_container
from overlay_assets.provider import AssetProvider

__all__ = [
    "AssetLoadError",
    "AssetProvider",
    "AssetTier",
    "ContainerFormatError",
    "OverlayAsset",
    "OverlayPart",
    "PointCloudGeometry",
    "SplatData",
    "TriangleGeometry",
    "decode_container",
]
