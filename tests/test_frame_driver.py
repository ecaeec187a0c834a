import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from camera import CameraUnavailableError
from config import AppConfig, DetectionConfig
from frame_driver import DetectorChannel, DriverState, FrameDriver
from overlay_assets.base import AssetTier
from overlay_types import FacingMode
from tests.conftest import (
    FakeCameraFactory,
    FakePresence,
    FakeSegmenter,
    ImmediateExecutor,
    ManualExecutor,
    ScriptedKeypoints,
    make_pair,
)


def _driver(config, keypoints=None, presence=None, segmenter=None, executor=None, factory=None):
    return FrameDriver(
        config,
        keypoints=keypoints or ScriptedKeypoints([make_pair()]),
        presence=presence or FakePresence(),
        segmentation=segmenter or FakeSegmenter(),
        camera_factory=factory or FakeCameraFactory(),
        executor=executor or ImmediateExecutor(),
        viewport=(64, 48),
    )


def test_start_runs_the_fallback_chain_and_enters_running(every_tick_config):
    driver = _driver(every_tick_config)
    assert driver.state is DriverState.IDLE
    assert driver.tick() is None

    driver.start()

    assert driver.state is DriverState.RUNNING
    assert driver.asset.tier is AssetTier.PRIMITIVE
    assert driver.session.frame_size == (640, 480)
    assert driver.session.scene.viewport == (64, 48)


def test_tick_anchors_and_shows_overlay(every_tick_config):
    driver = _driver(every_tick_config)
    driver.start()

    output = driver.tick()

    assert output.shape == (48, 64, 3)
    position = driver.session.smoother.transform.position
    assert position.x == pytest.approx(-0.375 * 0.6)
    assert position.y == pytest.approx(-0.2, abs=1e-6)
    assert driver.session.scene.overlay.position == pytest.approx(position.as_tuple())
    assert driver.asset.left.visible and driver.asset.right.visible
    assert driver.pose_status == "Detected (L:0.90, R:0.90)"


def test_visibility_holds_across_missed_detection(every_tick_config):
    keypoints = ScriptedKeypoints([make_pair(), None])
    driver = _driver(every_tick_config, keypoints=keypoints)
    driver.start()

    driver.tick()
    held = driver.session.smoother.transform.position.as_tuple()
    driver.tick()

    assert driver.session.pose.latest is None
    assert driver.session.visible
    assert driver.asset.left.visible
    # No pair: smoothing pauses instead of decaying.
    assert driver.session.smoother.transform.position.as_tuple() == held
    assert driver.pose_status == "No shoulders"


def test_presence_gate_hides_overlay(every_tick_config):
    driver = _driver(every_tick_config, presence=FakePresence(score=0.3))
    driver.start()
    driver.tick()
    assert not driver.session.visible
    assert not driver.asset.left.visible


def test_no_shoulders_ever_keeps_overlay_hidden(every_tick_config):
    driver = _driver(every_tick_config, keypoints=ScriptedKeypoints([None]))
    driver.start()
    for _ in range(3):
        driver.tick()
    assert not driver.asset.left.visible


def test_detectors_are_throttled_independently(missing_assets):
    config = AppConfig(
        detection=DetectionConfig(pose_every=3, presence_every=5, segmentation_every=2),
        assets=missing_assets,
    )
    keypoints, presence, segmenter = ScriptedKeypoints([make_pair()]), FakePresence(), FakeSegmenter()
    driver = _driver(config, keypoints=keypoints, presence=presence, segmenter=segmenter)
    driver.start()

    outputs = [driver.tick() for _ in range(10)]

    assert all(out is not None for out in outputs)
    assert keypoints.calls == 3
    assert presence.calls == 2
    assert segmenter.calls == 5


def test_in_flight_calls_do_not_stack():
    executor = ManualExecutor()
    channel = DetectorChannel("pose", 1, lambda frame: frame)

    for _ in range(5):
        assert not channel.tick(executor, "f1")
    assert executor.submitted == 1
    assert channel.in_flight

    executor.run_pending()
    assert channel.tick(executor, "f2")
    assert channel.latest == "f1"
    assert executor.submitted == 2


def test_failed_call_keeps_previous_result():
    executor = ImmediateExecutor()
    presence = FakePresence(fail_after=1)
    channel = DetectorChannel("presence", 1, presence.estimate, initial=[])

    assert channel.tick(executor, None)
    first = channel.latest
    assert not channel.tick(executor, None)
    assert channel.latest is first
    assert channel.failures == 1


def test_segmentation_result_reaches_occlusion_surface(every_tick_config):
    driver = _driver(every_tick_config, segmenter=FakeSegmenter(value=1.0))
    driver.start()
    assert not driver.session.scene.occlusion.has_mask
    driver.tick()
    assert driver.session.scene.occlusion.has_mask


def test_switch_camera_restarts_with_fresh_smoothing(every_tick_config):
    factory = FakeCameraFactory()
    driver = _driver(every_tick_config, factory=factory)
    driver.start()
    driver.tick()
    asset = driver.asset
    old_camera = factory.cameras[0]

    driver.switch_camera()

    assert old_camera.released
    assert factory.requests == [FacingMode.REAR, FacingMode.FRONT]
    assert driver.state is DriverState.RUNNING
    assert driver.facing is FacingMode.FRONT
    assert driver.asset is asset
    assert driver.session.last_pair is None
    assert driver.session.smoother.transform.position.as_tuple() == (0.0, 0.0, 0.0)

    driver.tick()
    assert driver.session.smoother.transform.position.x == pytest.approx(0.375 * 0.6)


def test_results_from_previous_session_are_dropped(every_tick_config):
    executor = ManualExecutor()
    driver = _driver(every_tick_config, executor=executor)
    driver.start()
    driver.tick()
    assert executor.pending

    driver.switch_camera()
    executor.run_pending()

    assert driver.session.pose.latest is None
    assert driver.session.last_pair is None

    driver.tick()
    assert driver.session.pose.latest is None
    assert driver.session.last_pair is None
    assert not driver.asset.left.visible


def test_camera_unavailable_is_fatal(every_tick_config):
    driver = _driver(every_tick_config, factory=FakeCameraFactory(fail=True))
    with pytest.raises(CameraUnavailableError):
        driver.start()
    assert driver.state is DriverState.IDLE
    assert driver.status.startswith("Error:")
    assert driver.tick() is None


def test_stop_releases_camera(every_tick_config):
    factory = FakeCameraFactory()
    driver = _driver(every_tick_config, factory=factory)
    driver.start()
    driver.stop()
    assert factory.cameras[0].released
    assert driver.state is DriverState.IDLE
    assert driver.tick() is None


class SlowKeypoints:
    """Records how many estimate() calls overlap on this one detector."""

    def __init__(self, delay: float = 0.2):
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def estimate(self, frame):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.delay)
        with self._lock:
            self.active -= 1
        return make_pair()


def test_camera_switch_does_not_overlap_calls_on_one_detector(every_tick_config):
    keypoints = SlowKeypoints()
    with ThreadPoolExecutor(max_workers=3) as executor:
        driver = _driver(every_tick_config, keypoints=keypoints, executor=executor)
        driver.start()
        driver.tick()
        driver.switch_camera()
        deadline = time.time() + 1.0
        while time.time() < deadline:
            driver.tick()
            time.sleep(0.01)
        driver.stop()
        assert driver.pose_channel.wait_idle(2.0)

    assert keypoints.calls >= 2
    assert keypoints.max_active == 1


def test_stale_result_is_dropped_but_guard_holds_across_restart(every_tick_config):
    executor = ManualExecutor()
    driver = _driver(every_tick_config, executor=executor)
    driver.start()
    driver.tick()
    submitted = executor.submitted

    driver.switch_camera()
    driver.tick()

    # Old calls are still pending, so nothing new is fired.
    assert executor.submitted == submitted
    assert driver.pose_channel.in_flight


def test_close_releases_detectors(every_tick_config):
    keypoints, presence, segmenter = ScriptedKeypoints([make_pair()]), FakePresence(), FakeSegmenter()
    factory = FakeCameraFactory()
    driver = _driver(every_tick_config, keypoints=keypoints, presence=presence, segmenter=segmenter, factory=factory)
    driver.start()
    driver.tick()

    driver.close()

    assert keypoints.closed and presence.closed and segmenter.closed
    assert factory.cameras[0].released
    assert driver.state is DriverState.IDLE


def test_stop_keeps_detectors_open_for_restart(every_tick_config):
    presence = FakePresence()
    driver = _driver(every_tick_config, presence=presence)
    driver.start()
    driver.stop()
    assert not presence.closed
    driver.start()
    assert driver.tick() is not None


def test_failed_read_rerenders_last_frame(every_tick_config):
    factory = FakeCameraFactory()
    driver = _driver(every_tick_config, factory=factory)
    driver.start()
    first = driver.tick().copy()

    factory.cameras[0].fail_reads = True
    output = driver.tick()

    assert output is not None
    assert output.shape == first.shape
    assert driver.status == "Camera error"

    factory.cameras[0].fail_reads = False
    driver.tick()
    assert driver.status == "Running"


def test_failed_first_read_renders_nothing(every_tick_config):
    factory = FakeCameraFactory()
    driver = _driver(every_tick_config, factory=factory)
    driver.start()
    factory.cameras[0].fail_reads = True
    assert driver.tick() is None
    assert driver.status == "Camera error"
