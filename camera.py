import logging
import sys
import time
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from config import CameraConfig
from overlay_types import FacingMode

logger = logging.getLogger(__name__)


class CameraUnavailableError(RuntimeError):
    """No camera could be opened in either facing mode."""


@dataclass
class CameraFrame:
    frame: Optional[np.ndarray]
    timestamp: float
    ok: bool


class CameraStream:
    def __init__(
        self,
        camera_index: int = 0,
        width: int = 1280,
        height: int = 720,
        target_fps: int = 30,
        facing: FacingMode = FacingMode.REAR,
    ):
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.target_fps = target_fps
        self.facing = facing
        self._capture: Optional[cv2.VideoCapture] = None
        self._last_time = time.time()

    def open(self) -> bool:
        backend = cv2.CAP_DSHOW if sys.platform.startswith("win") else cv2.CAP_ANY
        self._capture = cv2.VideoCapture(self.camera_index, backend)
        if not self._capture.isOpened():
            self._capture.release()
            self._capture = None
            return False
        self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture.set(cv2.CAP_PROP_FPS, self.target_fps)
        return True

    def read(self) -> CameraFrame:
        if self._capture is None:
            return CameraFrame(None, time.time(), False)

        ok, frame = self._capture.read()
        now = time.time()
        if not ok:
            return CameraFrame(None, now, False)

        # Keep processing close to target_fps.
        if self.target_fps > 0:
            min_frame_time = 1.0 / float(self.target_fps)
            elapsed = now - self._last_time
            if elapsed < min_frame_time:
                time.sleep(min_frame_time - elapsed)
                now = time.time()
        self._last_time = now
        return CameraFrame(frame, now, True)

    def wait_for_dimensions(self, timeout_seconds: float, fallback: Tuple[int, int]) -> Tuple[int, int]:
        """
        Block until the first frame arrives and return its (width, height).

        Falls back to `fallback` if no frame shows up within the timeout.
        """
        deadline = time.time() + timeout_seconds
        while True:
            cam_frame = self.read()
            if cam_frame.ok and cam_frame.frame is not None:
                height, width = cam_frame.frame.shape[:2]
                return width, height
            if time.time() >= deadline:
                logger.warning(
                    "[camera] no frame within %.1fs, assuming %dx%d", timeout_seconds, fallback[0], fallback[1]
                )
                return fallback
            time.sleep(0.01)

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None


def open_camera(facing: FacingMode, config: CameraConfig) -> CameraStream:
    """Open the camera for `facing`, trying the other facing mode once before giving up."""
    for candidate in (facing, facing.other()):
        stream = CameraStream(
            camera_index=config.index_for(candidate),
            width=config.width,
            height=config.height,
            target_fps=config.target_fps,
            facing=candidate,
        )
        if stream.open():
            if candidate is not facing:
                logger.warning("[camera] %s camera unavailable, using %s", facing.value, candidate.value)
            return stream
        logger.info("[camera] could not open %s camera (index %d)", candidate.value, stream.camera_index)
    raise CameraUnavailableError(f"Camera access failed: tried {facing.value} and {facing.other().value} cameras")
