import logging
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from config import AssetConfig
from overlay_assets.base import AssetLoadError, AssetTier, Geometry, OverlayAsset, OverlayPart
from overlay_assets.mesh import load_mesh_pair
from overlay_assets.point_cloud import load_point_cloud_pair
from overlay_assets.primitive import box_pair

logger = logging.getLogger(__name__)


class AssetProvider:
    """
    Resolves the overlay asset through the tier fallback chain:
    point cloud, then mesh, then the box placeholder.

    The chain runs once; later calls return the resolved asset.
    """

    def __init__(self, config: AssetConfig):
        self.config = config
        self.asset: Optional[OverlayAsset] = None
        self.status = "Not loaded"
        self.failures: List[Tuple[AssetTier, str]] = []

    def load_assets(self) -> OverlayAsset:
        if self.asset is not None:
            return self.asset

        cfg = self.config
        attempts: List[Tuple[AssetTier, Callable[[], Tuple[Geometry, Geometry]], float, str]] = [
            (
                AssetTier.POINT_CLOUD,
                lambda: load_point_cloud_pair(
                    Path(cfg.point_cloud_left), Path(cfg.point_cloud_right), timeout_seconds=cfg.load_timeout_seconds
                ),
                cfg.point_cloud_scale,
                cfg.point_cloud_left,
            ),
            (
                AssetTier.MESH,
                lambda: load_mesh_pair(Path(cfg.mesh_left), Path(cfg.mesh_right)),
                cfg.mesh_scale,
                cfg.mesh_left,
            ),
        ]

        for tier, loader, part_scale, source in attempts:
            self.status = f"Loading {tier.value} wings..."
            try:
                left, right = loader()
            except AssetLoadError as e:
                self._record_failure(tier, str(e))
                continue
            except Exception as e:
                # Anything a loader raises is a tier failure, never a pipeline failure.
                self._record_failure(tier, f"{type(e).__name__}: {e}")
                continue
            return self._activate(tier, left, right, part_scale, source)

        left, right = box_pair()
        return self._activate(AssetTier.PRIMITIVE, left, right, cfg.primitive_scale, "placeholder")

    def _record_failure(self, tier: AssetTier, reason: str) -> None:
        logger.warning("[assets] %s tier failed: %s; falling back", tier.value, reason)
        self.failures.append((tier, reason))

    def _activate(
        self, tier: AssetTier, left: Geometry, right: Geometry, part_scale: float, source: str
    ) -> OverlayAsset:
        self.asset = OverlayAsset(
            tier=tier,
            left=OverlayPart("left", left),
            right=OverlayPart("right", right),
            part_scale=part_scale,
            source=source,
        )
        self.status = f"{tier.value} wings active"
        logger.info("[assets] %s tier active (%s)", tier.value, source)
        return self.asset
