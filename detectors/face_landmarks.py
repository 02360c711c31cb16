import logging
import math
from typing import Optional

import cv2
import numpy as np

from errors import CapabilityUnavailable
from records import FaceSample

logger = logging.getLogger(__name__)


def squash_score(score: float) -> float:
    """dlib reports an SVM margin, map it onto [0, 1]."""
    return 1.0 / (1.0 + math.exp(-float(score)))


class DlibFaceLandmarker:
    """HOG face detector plus the 68-point shape predictor, primary face only."""

    def __init__(self, predictor_path: str = "models/shape_predictor_68_face_landmarks.dat", upsample: int = 0):
        self.predictor_path = predictor_path
        self.upsample = upsample
        self.detector = None
        self.predictor = None

    @property
    def is_loaded(self) -> bool:
        return self.detector is not None and self.predictor is not None

    def load(self):
        import dlib

        logger.info(f"Loading dlib shape predictor from {self.predictor_path}")
        self.detector = dlib.get_frontal_face_detector()
        self.predictor = dlib.shape_predictor(self.predictor_path)

    def detect(self, frame_bgr) -> Optional[FaceSample]:
        """Return the highest-scoring face with its landmarks, or None."""
        if not self.is_loaded:
            raise CapabilityUnavailable("face landmark model not loaded")
        if frame_bgr is None or frame_bgr.size == 0:
            return None

        gray = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2GRAY)
        rects, scores, _ = self.detector.run(gray, self.upsample, 0)
        if len(rects) == 0:
            return None

        best = max(range(len(rects)), key=lambda i: scores[i])
        rect = rects[best]
        shape = self.predictor(gray, rect)
        points = np.array([(shape.part(i).x, shape.part(i).y) for i in range(68)], dtype=np.float64)
        return FaceSample(
            landmarks=points,
            confidence=squash_score(scores[best]),
            box=(rect.left(), rect.top(), rect.right(), rect.bottom()),
        )
