from typing import List, Optional, Tuple

import cv2

from overlay_types import FacingMode, Keypoint, ShoulderPair

POINT_COLOR = (136, 255, 0)  # BGR for #00ff88


def to_display_point(
    kp: Keypoint, frame_size: Tuple[int, int], display_size: Tuple[int, int], facing: FacingMode
) -> Tuple[int, int]:
    frame_w, frame_h = frame_size
    display_w, display_h = display_size
    x = kp.x
    # Same mirror as the background and the anchor.
    if facing.mirrored:
        x = frame_w - x
    return int(x * display_w / frame_w), int(kp.y * display_h / frame_h)


def draw_shoulder_points(
    frame, pair: ShoulderPair, frame_size: Tuple[int, int], facing: FacingMode, radius: int = 5
) -> None:
    height, width = frame.shape[:2]
    for kp in (pair.left, pair.right):
        x, y = to_display_point(kp, frame_size, (width, height), facing)
        cv2.circle(frame, (x, y), radius, POINT_COLOR, -1)


def draw_status_panel(frame, lines: List[str], origin=(10, 30)) -> None:
    x, y = origin
    for line in lines:
        cv2.putText(frame, line, (x, y), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)
        y += 28


class FpsCounter:
    """Frames per second, refreshed once per `window` seconds."""

    def __init__(self, window: float = 1.0):
        self.window = window
        self.value = 0.0
        self._frames = 0
        self._window_start: Optional[float] = None

    def tick(self, now: float) -> float:
        if self._window_start is None:
            self._window_start = now
            return self.value
        self._frames += 1
        elapsed = now - self._window_start
        if elapsed >= self.window:
            self.value = self._frames / elapsed
            self._frames = 0
            self._window_start = now
        return self.value
