from typing import Iterable, List

import cv2
import mediapipe as mp

from overlay_types import PresenceDetection


def is_present(detections: Iterable[PresenceDetection], min_score: float = 0.7) -> bool:
    return any(d.score >= min_score for d in detections)


class FaceDetector:
    """Presence source: MediaPipe short-range face detection."""

    def __init__(self, min_detection_confidence: float = 0.5, model_selection: int = 0):
        self._detector = mp.solutions.face_detection.FaceDetection(
            model_selection=model_selection,
            min_detection_confidence=min_detection_confidence,
        )

    def estimate(self, frame_bgr, flip_horizontal: bool = False) -> List[PresenceDetection]:
        if flip_horizontal:
            frame_bgr = cv2.flip(frame_bgr, 1)
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        results = self._detector.process(frame_rgb)
        detections: List[PresenceDetection] = []
        for det in results.detections or []:
            score = float(det.score[0]) if det.score else 0.0
            box = det.location_data.relative_bounding_box
            detections.append(PresenceDetection(score=score, box=(box.xmin, box.ymin, box.width, box.height)))
        return detections

    def close(self) -> None:
        self._detector.close()
