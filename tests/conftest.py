import time
from concurrent.futures import Executor, Future
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import pytest

from camera import CameraFrame
from config import AppConfig, AssetConfig, DetectionConfig
from overlay_types import FacingMode, Keypoint, PresenceDetection, SegmentationMask, ShoulderPair


class ImmediateExecutor(Executor):
    """Runs submitted calls synchronously; futures are done on return."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class ManualExecutor(Executor):
    """Holds submitted calls until run_pending() is called."""

    def __init__(self):
        self.pending: List[Tuple[Future, Callable, tuple]] = []
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future: Future = Future()
        self.pending.append((future, fn, args))
        return future

    def run_pending(self) -> None:
        pending, self.pending = self.pending, []
        for future, fn, args in pending:
            try:
                future.set_result(fn(*args))
            except Exception as e:
                future.set_exception(e)


class FakeCamera:
    def __init__(self, facing: FacingMode, size=(640, 480)):
        self.facing = facing
        self.size = size
        self.released = False
        self.reads = 0
        self.fail_reads = False

    def read(self) -> CameraFrame:
        self.reads += 1
        if self.fail_reads:
            return CameraFrame(None, time.time(), False)
        width, height = self.size
        return CameraFrame(np.zeros((height, width, 3), dtype=np.uint8), time.time(), True)

    def wait_for_dimensions(self, timeout_seconds, fallback):
        return self.size

    def release(self) -> None:
        self.released = True


class FakeCameraFactory:
    def __init__(self, size=(640, 480), fail: bool = False):
        self.size = size
        self.fail = fail
        self.requests: List[FacingMode] = []
        self.cameras: List[FakeCamera] = []

    def __call__(self, facing, config):
        from camera import CameraUnavailableError

        self.requests.append(facing)
        if self.fail:
            raise CameraUnavailableError("Camera access failed: tried rear and front cameras")
        cam = FakeCamera(facing, self.size)
        self.cameras.append(cam)
        return cam


class ScriptedKeypoints:
    """Returns the scripted results in order, then repeats the last one."""

    def __init__(self, results: Sequence[Optional[ShoulderPair]]):
        self.results = list(results)
        self.calls = 0
        self.closed = False

    def estimate(self, frame):
        idx = min(self.calls, len(self.results) - 1)
        self.calls += 1
        return self.results[idx]

    def close(self):
        self.closed = True


class FakePresence:
    def __init__(self, score: float = 0.9, fail_after: Optional[int] = None):
        self.score = score
        self.fail_after = fail_after
        self.calls = 0
        self.closed = False

    def estimate(self, frame, flip_horizontal=False):
        self.calls += 1
        if self.fail_after is not None and self.calls > self.fail_after:
            raise RuntimeError("face detector crashed")
        return [PresenceDetection(score=self.score)]

    def close(self):
        self.closed = True


class FakeSegmenter:
    def __init__(self, value: float = 0.0):
        self.value = value
        self.calls = 0
        self.closed = False

    def segment(self, frame, flip_horizontal=False):
        self.calls += 1
        height, width = frame.shape[:2]
        return SegmentationMask(alpha=np.full((height, width), self.value, dtype=np.float32))

    def close(self):
        self.closed = True


def make_pair(left=(100.0, 200.0, 0.9), right=(300.0, 200.0, 0.9)) -> ShoulderPair:
    return ShoulderPair(Keypoint(*left), Keypoint(*right))


@pytest.fixture
def pair() -> ShoulderPair:
    return make_pair()


@pytest.fixture
def missing_assets(tmp_path) -> AssetConfig:
    return AssetConfig(
        point_cloud_left=str(tmp_path / "missing_left.ksplat"),
        point_cloud_right=str(tmp_path / "missing_right.ksplat"),
        mesh_left=str(tmp_path / "missing_left.ply"),
        mesh_right=str(tmp_path / "missing_right.ply"),
        load_timeout_seconds=1.0,
    )


@pytest.fixture
def every_tick_config(missing_assets) -> AppConfig:
    return AppConfig(
        detection=DetectionConfig(pose_every=1, presence_every=1, segmentation_every=1),
        assets=missing_assets,
    )
