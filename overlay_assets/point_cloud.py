import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Optional, Tuple

from overlay_assets.base import AssetLoadError, PointCloudGeometry
from overlay_assets.container import decode_container

logger = logging.getLogger(__name__)


def read_point_cloud(path: Path) -> PointCloudGeometry:
    splat = decode_container(Path(path).read_bytes())
    logger.info("[assets] decoded %d splats from %s", splat.count, path)
    return splat.to_geometry()


def _outcome(future: Future) -> str:
    if not future.done():
        return "pending"
    return "failed" if future.exception() is not None else "ready"


def load_point_cloud_pair(
    left_path: Path,
    right_path: Path,
    timeout_seconds: float = 20.0,
    executor: Optional[Executor] = None,
) -> Tuple[PointCloudGeometry, PointCloudGeometry]:
    """
    Decode both wing containers concurrently and wait for both.

    Raises AssetLoadError if either file is missing, either decode fails, or
    both parts are not ready within `timeout_seconds`. A decode still running
    at the deadline is abandoned.
    """
    for side, path in (("left", left_path), ("right", right_path)):
        if not Path(path).is_file():
            raise AssetLoadError(f"{side} point-cloud file not found: {path}")

    own_executor = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="splat")
    try:
        left = pool.submit(read_point_cloud, left_path)
        right = pool.submit(read_point_cloud, right_path)
        wait([left, right], timeout=timeout_seconds)

        if not (left.done() and right.done()):
            raise AssetLoadError(
                f"point-cloud load timeout after {timeout_seconds:.1f}s "
                f"(left: {_outcome(left)}, right: {_outcome(right)})"
            )
        for side, future in (("left", left), ("right", right)):
            error = future.exception()
            if error is not None:
                raise AssetLoadError(f"{side} point-cloud decode failed: {error}") from error
        return left.result(), right.result()
    finally:
        if own_executor:
            pool.shutdown(wait=False, cancel_futures=True)
