import logging
import math
from typing import Optional

import numpy as np

from config import Thresholds
from errors import GeometryDegenerate
from records import FaceSample, GazeDirection, HeadPoseResult

logger = logging.getLogger(__name__)

# 68-point (iBUG) topology
NOSE_TIP = 30
LEFT_EYE = slice(36, 42)
RIGHT_EYE = slice(42, 48)

NO_FACE = HeadPoseResult(
    face_detected=False,
    looking_away=True,
    direction=GazeDirection.NO_FACE_DETECTED,
)


class HeadPoseEstimator:
    """Classifies gaze direction from where the nose tip sits relative to the eyes.

    Deviations are normalised by the horizontal distance between the eye
    centers, so the result does not depend on how far the face is from the
    camera. Each call looks at one face sample only.
    """

    def __init__(self, thresholds: Optional[Thresholds] = None):
        t = thresholds or Thresholds()
        self.horizontal_threshold = t.horizontal_deviation
        self.vertical_threshold = t.vertical_deviation

    def deviations(self, landmarks: np.ndarray):
        """Return (horizontal, vertical) deviation or raise GeometryDegenerate."""
        pts = np.asarray(landmarks, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[0] < 68 or pts.shape[1] < 2:
            raise GeometryDegenerate(f"expected 68x2 landmarks, got shape {pts.shape}")

        nose = pts[NOSE_TIP]
        # Cluster means sit about 2/3 of the outer-corner distance apart (36 to 45),
        # so deviations read roughly 1.5x larger than a corner-based span would give
        # and the 0.3/0.4 thresholds trip at smaller head turns.
        left_eye = pts[LEFT_EYE].mean(axis=0)
        right_eye = pts[RIGHT_EYE].mean(axis=0)
        center = (left_eye + right_eye) / 2.0

        span = right_eye[0] - left_eye[0]
        if span == 0 or not math.isfinite(span):
            raise GeometryDegenerate(f"eye span is {span}")

        horizontal = float((nose[0] - center[0]) / span)
        vertical = float((nose[1] - center[1]) / span)
        if not (math.isfinite(horizontal) and math.isfinite(vertical)):
            raise GeometryDegenerate("non-finite deviation")
        return horizontal, vertical

    def classify(self, horizontal: float, vertical: float):
        """Return (looking_away, direction). Horizontal wins over vertical."""
        if abs(horizontal) > self.horizontal_threshold:
            direction = GazeDirection.LOOKING_RIGHT if horizontal > 0 else GazeDirection.LOOKING_LEFT
            return True, direction
        if vertical > self.vertical_threshold:
            return True, GazeDirection.LOOKING_DOWN
        if vertical < -self.vertical_threshold:
            return True, GazeDirection.LOOKING_UP
        return False, GazeDirection.LOOKING_AT_SCREEN

    def estimate(self, face: Optional[FaceSample]) -> Optional[HeadPoseResult]:
        """
        Head pose for the primary face.
        Returns NO_FACE when face is None, and None when the landmarks are unusable.
        """
        if face is None:
            return NO_FACE

        try:
            horizontal, vertical = self.deviations(face.landmarks)
        except GeometryDegenerate as e:
            logger.warning(f"Head pose unavailable this cycle: {e}")
            return None

        looking_away, direction = self.classify(horizontal, vertical)
        return HeadPoseResult(
            face_detected=True,
            looking_away=looking_away,
            direction=direction,
            horizontal_deviation=horizontal,
            vertical_deviation=vertical,
            confidence=min(1.0, max(0.0, float(face.confidence))),
        )
