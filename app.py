import argparse
import logging

import cv2
import numpy as np

from camera import CameraUnavailableError
from config import AppConfig, load_config
from frame_driver import FrameDriver
from pose_detection import ShoulderDetector
from presence import FaceDetector
from segmentation import BodySegmenter
from visualization import draw_status_panel

logger = logging.getLogger(__name__)


def build_driver(config: AppConfig) -> FrameDriver:
    det = config.detection
    return FrameDriver(
        config,
        keypoints=ShoulderDetector(shoulder_min_confidence=det.shoulder_min_confidence),
        presence=FaceDetector(),
        segmentation=BodySegmenter(threshold=det.segmentation_threshold),
    )


def status_lines(driver: FrameDriver):
    asset = driver.asset
    return [
        f"Status: {driver.status}",
        f"Camera: {driver.facing.value}",
        f"Pose: {driver.pose_status}",
        f"Wings: {asset.label if asset else '-'}",
        f"FPS: {driver.fps:.1f}",
        "Keys: C switch camera, Q quit",
    ]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Shoulder-anchored wing overlay on a live camera feed.")
    parser.add_argument("--config", default=None, help="Path to config.json.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(levelname)s:%(name)s:%(message)s",
    )
    config = load_config(args.config)
    window_name = "AR Wings"
    driver = build_driver(config)
    try:
        driver.start()
    except CameraUnavailableError as e:
        print(f"Error: {e}")
        driver.close()
        return

    cv2.namedWindow(window_name, cv2.WINDOW_NORMAL)
    while True:
        output = driver.tick()
        if output is None:
            output = np.zeros((480, 640, 3), dtype=np.uint8)
        else:
            output = output.copy()
        draw_status_panel(output, status_lines(driver), origin=(10, 30))
        cv2.imshow(window_name, output)

        key = cv2.waitKey(1)
        if cv2.getWindowProperty(window_name, cv2.WND_PROP_VISIBLE) < 1:
            break
        if key & 0xFF == ord("q"):
            break
        if key & 0xFF == ord("c"):
            try:
                driver.switch_camera()
            except CameraUnavailableError as e:
                logger.error("Camera switch failed: %s", e)
                break

    driver.close()
    cv2.destroyAllWindows()


if __name__ == "__main__":
    main()
