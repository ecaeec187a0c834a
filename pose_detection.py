from typing import Optional

import cv2
import mediapipe as mp

from overlay_types import Keypoint, ShoulderPair


class ShoulderDetector:
    """Keypoint source: MediaPipe Pose reduced to a shoulder pair in pixel space."""

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        shoulder_min_confidence: float = 0.4,
        model_complexity: int = 0,
    ):
        self.shoulder_min_confidence = shoulder_min_confidence
        self._mp_pose = mp.solutions.pose
        self._pose = self._mp_pose.Pose(
            static_image_mode=False,
            model_complexity=model_complexity,
            smooth_landmarks=True,
            enable_segmentation=False,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def estimate(self, frame_bgr) -> Optional[ShoulderPair]:
        height, width = frame_bgr.shape[:2]
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        results = self._pose.process(frame_rgb)
        if results.pose_landmarks is None:
            return None

        landmarks = results.pose_landmarks.landmark
        PL = self._mp_pose.PoseLandmark

        def _keypoint(idx) -> Keypoint:
            lm = landmarks[int(idx)]
            return Keypoint(x=lm.x * width, y=lm.y * height, confidence=float(lm.visibility))

        return ShoulderPair.from_keypoints(
            _keypoint(PL.LEFT_SHOULDER),
            _keypoint(PL.RIGHT_SHOULDER),
            min_confidence=self.shoulder_min_confidence,
        )

    def close(self) -> None:
        self._pose.close()
