import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar

import numpy as np

from anchor import AnchorSmoother
from camera import CameraStream, CameraUnavailableError, open_camera
from config import AppConfig, CameraConfig
from overlay_assets.base import OverlayAsset
from overlay_assets.provider import AssetProvider
from overlay_types import FacingMode, PresenceDetection, SegmentationMask, ShoulderPair
from presence import is_present
from scene import SceneCompositor
from visualization import FpsCounter, draw_shoulder_points

logger = logging.getLogger(__name__)

T = TypeVar("T")
CameraFactory = Callable[[FacingMode, CameraConfig], CameraStream]


class DriverState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"


class DetectorChannel(Generic[T]):
    """
    Throttled, fire-and-forget wrapper around one detector call.

    The call is submitted every `every` ticks, never while a previous call is
    still in flight. Finished calls are harvested on the tick thread; a failed
    call leaves the previous result in place.

    The channel outlives camera sessions so the in-flight guard covers the
    detector across a restart. `reset()` starts a new epoch: a call submitted
    in an earlier epoch still blocks new submissions until it finishes, but
    its result is dropped.
    """

    def __init__(self, name: str, every: int, call: Callable[..., T], initial: Optional[T] = None):
        self.name = name
        self.every = max(1, int(every))
        self.call = call
        self.initial = initial
        self.latest: Optional[T] = initial
        self.counter = 0
        self.failures = 0
        self.epoch = 0
        self._future: Optional[Future] = None
        self._future_epoch = 0

    @property
    def in_flight(self) -> bool:
        return self._future is not None

    def reset(self) -> None:
        self.epoch += 1
        self.latest = self.initial
        self.counter = 0

    def tick(self, executor: Executor, *args: Any) -> bool:
        """Advance the throttle; returns True when a fresh result was harvested."""
        updated = self._harvest()
        self.counter += 1
        if self._future is None and self.counter >= self.every:
            self.counter = 0
            self._future = executor.submit(self.call, *args)
            self._future_epoch = self.epoch
        return self._harvest() or updated

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the in-flight call (if any) finishes; False on timeout."""
        future = self._future
        if future is None:
            return True
        done, _ = wait([future], timeout=timeout)
        return bool(done)

    def _harvest(self) -> bool:
        future = self._future
        if future is None or not future.done():
            return False
        self._future = None
        if future.cancelled():
            return False
        if self._future_epoch != self.epoch:
            logger.debug("[driver] dropping %s result from a previous session", self.name)
            return False
        error = future.exception()
        if error is not None:
            self.failures += 1
            logger.debug("[driver] %s call failed: %s", self.name, error)
            return False
        self.latest = future.result()
        return True


@dataclass
class PipelineSession:
    """Per-start state; rebuilt on every start and dropped on restart."""

    facing: FacingMode
    camera: CameraStream
    frame_size: Tuple[int, int]
    scene: SceneCompositor
    smoother: AnchorSmoother
    pose: DetectorChannel[ShoulderPair]
    presence: DetectorChannel[List[PresenceDetection]]
    segmentation: DetectorChannel[SegmentationMask]
    last_pair: Optional[ShoulderPair] = None
    last_frame: Optional[np.ndarray] = None
    visible: bool = False
    fps: FpsCounter = field(default_factory=FpsCounter)


class FrameDriver:
    def __init__(
        self,
        config: AppConfig,
        keypoints,
        presence,
        segmentation,
        asset_provider: Optional[AssetProvider] = None,
        camera_factory: CameraFactory = open_camera,
        executor: Optional[Executor] = None,
        viewport: Optional[Tuple[int, int]] = None,
        draw_debug_points: bool = True,
    ):
        self.config = config
        self.keypoints = keypoints
        self.presence = presence
        self.segmentation = segmentation
        self.asset_provider = asset_provider or AssetProvider(config.assets)
        self.camera_factory = camera_factory
        self.viewport = viewport
        self.draw_debug_points = draw_debug_points
        self.facing = config.camera.initial_facing
        self.state = DriverState.IDLE
        self.session: Optional[PipelineSession] = None
        self.asset: Optional[OverlayAsset] = None
        self.status = "Idle"
        self.pose_status = "-"
        self._executor = executor
        self._own_executor = executor is None

        # One channel per detector for the driver's lifetime; sessions only bump the epoch.
        det = config.detection
        self.pose_channel: DetectorChannel[ShoulderPair] = DetectorChannel("pose", det.pose_every, keypoints.estimate)
        self.presence_channel: DetectorChannel[List[PresenceDetection]] = DetectorChannel(
            "presence", det.presence_every, presence.estimate, initial=[]
        )
        self.segmentation_channel: DetectorChannel[SegmentationMask] = DetectorChannel(
            "segmentation", det.segmentation_every, segmentation.segment
        )

    @property
    def channels(self) -> Tuple[DetectorChannel, DetectorChannel, DetectorChannel]:
        return self.pose_channel, self.presence_channel, self.segmentation_channel

    @property
    def running(self) -> bool:
        return self.state is DriverState.RUNNING

    @property
    def fps(self) -> float:
        return self.session.fps.value if self.session is not None else 0.0

    def _ensure_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.detection.max_workers, thread_name_prefix="detector"
            )
            self._own_executor = True
        return self._executor

    def start(self) -> None:
        if self.state is DriverState.RUNNING:
            return
        self.state = DriverState.STARTING
        self.status = "Requesting camera access..."
        self.pose_status = "-"
        cam_cfg = self.config.camera
        try:
            camera = self.camera_factory(self.facing, cam_cfg)
        except CameraUnavailableError as e:
            logger.error("[driver] %s", e)
            self.state = DriverState.IDLE
            self.status = f"Error: {e}"
            raise
        self.facing = camera.facing

        frame_size = camera.wait_for_dimensions(
            cam_cfg.metadata_timeout_seconds, (cam_cfg.fallback_width, cam_cfg.fallback_height)
        )
        logger.info("[driver] %s camera active, %dx%d", self.facing.value, frame_size[0], frame_size[1])

        scene = SceneCompositor(self.config.scene, self.viewport or frame_size)
        if self.asset is None:
            self.asset = self.asset_provider.load_assets()
        self.asset.set_visible(False)
        scene.attach(self.asset)

        for channel in self.channels:
            channel.reset()
        self.session = PipelineSession(
            facing=self.facing,
            camera=camera,
            frame_size=frame_size,
            scene=scene,
            smoother=AnchorSmoother(self.config.anchor, depth=self.config.scene.overlay_depth),
            pose=self.pose_channel,
            presence=self.presence_channel,
            segmentation=self.segmentation_channel,
        )
        self._ensure_executor()
        self.state = DriverState.RUNNING
        self.status = "Running"

    def _teardown(self) -> None:
        session, self.session = self.session, None
        if session is not None:
            # In-flight detector calls finish on their own; their results are dropped by epoch.
            session.camera.release()

    def switch_camera(self) -> None:
        self.state = DriverState.RESTARTING
        self.status = "Switching camera..."
        self._teardown()
        self.facing = self.facing.other()
        self.start()

    def stop(self) -> None:
        self._teardown()
        self.state = DriverState.IDLE
        self.status = "Idle"
        if self._own_executor and self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def close(self, timeout: float = 5.0) -> None:
        """Stop and release the detectors. The driver cannot be started again."""
        self.stop()
        for channel in self.channels:
            if not channel.wait_idle(timeout):
                logger.warning("[driver] %s call still running after %.1fs", channel.name, timeout)
        for source in (self.keypoints, self.presence, self.segmentation):
            close = getattr(source, "close", None)
            if close is not None:
                close()

    def resize(self, width: int, height: int) -> None:
        self.viewport = (int(width), int(height))
        if self.session is not None:
            self.session.scene.resize(width, height)

    def tick(self) -> Optional[np.ndarray]:
        if not self.running or self.session is None:
            return None
        session = self.session
        cam_frame = session.camera.read()
        if cam_frame.ok and cam_frame.frame is not None:
            session.last_frame = cam_frame.frame
            if self.status == "Camera error":
                self.status = "Running"
        else:
            self.status = "Camera error"
            if session.last_frame is None:
                return None

        # A failed read re-renders the last good frame.
        frame = session.last_frame
        frame_size = (frame.shape[1], frame.shape[0])
        facing = session.facing
        executor = self._ensure_executor()

        if session.pose.tick(executor, frame):
            self.pose_status = _describe_pair(session.pose.latest)
        session.presence.tick(executor, frame, facing.mirrored)
        # Masks come back frame-aligned; the occlusion surface applies the mirror.
        if session.segmentation.tick(executor, frame, False) and session.segmentation.latest is not None:
            session.scene.update_mask(session.segmentation.latest, facing)

        pair = session.pose.latest
        if pair is not None:
            session.last_pair = pair
            transform = session.smoother.update(pair, frame_size, session.scene.viewport[1], facing)
            session.scene.apply_anchor(transform)
            session.smoother.position_asset(self.asset)

        present = is_present(session.presence.latest or [], self.config.detection.presence_min_score)
        session.visible = present and session.last_pair is not None
        self.asset.set_visible(session.visible)

        output = session.scene.render(frame, facing)
        if pair is not None and self.draw_debug_points:
            draw_shoulder_points(output, pair, frame_size, facing)
        session.fps.tick(cam_frame.timestamp)
        return output


def _describe_pair(pair: Optional[ShoulderPair]) -> str:
    if pair is None:
        return "No shoulders"
    return f"Detected (L:{pair.left.confidence:.2f}, R:{pair.right.confidence:.2f})"
