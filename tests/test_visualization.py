import numpy as np
import pytest

from geometry import compose_transform, frame_filling_size, normalize_x, normalize_y, transform_points
from overlay_types import FacingMode, Keypoint, PresenceDetection, ShoulderPair
from presence import is_present
from visualization import FpsCounter, draw_shoulder_points, to_display_point


def test_debug_points_mirror_with_front_camera():
    kp = Keypoint(100.0, 200.0, 0.9)
    assert to_display_point(kp, (640, 480), (640, 480), FacingMode.REAR) == (100, 200)
    assert to_display_point(kp, (640, 480), (640, 480), FacingMode.FRONT) == (540, 200)
    assert to_display_point(kp, (640, 480), (320, 240), FacingMode.REAR) == (50, 100)


def test_draw_shoulder_points_marks_both_sides():
    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    pair = ShoulderPair(Keypoint(100, 200, 0.9), Keypoint(300, 200, 0.9))
    draw_shoulder_points(frame, pair, (640, 480), FacingMode.REAR)
    assert frame[200, 100].any() and frame[200, 300].any()
    assert not frame[200, 200].any()


def test_pair_requires_both_confident_shoulders():
    good, weak = Keypoint(1, 1, 0.9), Keypoint(2, 2, 0.3)
    assert ShoulderPair.from_keypoints(good, good) is not None
    assert ShoulderPair.from_keypoints(good, weak) is None
    assert ShoulderPair.from_keypoints(None, good) is None


def test_presence_threshold():
    detections = [PresenceDetection(0.55), PresenceDetection(0.72)]
    assert is_present(detections, 0.7)
    assert not is_present(detections, 0.8)
    assert not is_present([], 0.5)


def test_normalization_flips_y():
    assert normalize_x(0, 640) == -1.0
    assert normalize_x(640, 640) == 1.0
    assert normalize_y(0, 480) == 1.0
    assert normalize_y(480, 480) == -1.0


def test_frame_filling_size_matches_aspect():
    width, height = frame_filling_size(90.0, -1.0, 2.0)
    assert height == pytest.approx(2.0)
    assert width == pytest.approx(4.0)


def test_compose_transform_orders_scale_rotate_translate():
    matrix = compose_transform((1.0, 0.0, 0.0), (0.0, 0.0, np.pi / 2), (2.0, 1.0, 1.0))
    assert transform_points(matrix, [[1.0, 0.0, 0.0]])[0] == pytest.approx([1.0, 2.0, 0.0])


def test_fps_counter_reports_after_window():
    fps = FpsCounter(window=1.0)
    for i in range(31):
        fps.tick(i / 30.0)
    assert fps.value == pytest.approx(30.0)
