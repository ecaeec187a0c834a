import time

import cv2
import mediapipe as mp
import numpy as np

from overlay_types import SegmentationMask


class BodySegmenter:
    """Segmentation source: MediaPipe Selfie Segmentation as a binary mask."""

    def __init__(self, threshold: float = 0.7, model_selection: int = 1):
        self.threshold = threshold
        self._segmenter = mp.solutions.selfie_segmentation.SelfieSegmentation(model_selection=model_selection)

    def segment(self, frame_bgr, flip_horizontal: bool = False) -> SegmentationMask:
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        results = self._segmenter.process(frame_rgb)
        probability = results.segmentation_mask
        if probability is None:
            raise RuntimeError("segmentation returned no mask")

        alpha = (np.asarray(probability, dtype=np.float32) >= self.threshold).astype(np.float32)
        # Soften the binary edge a little, like a small blur on the mask canvas.
        alpha = cv2.GaussianBlur(alpha, (7, 7), 0)
        if flip_horizontal:
            alpha = cv2.flip(alpha, 1)
        return SegmentationMask(alpha=alpha, timestamp=time.time())

    def close(self) -> None:
        self._segmenter.close()
