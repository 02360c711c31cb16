import logging
from typing import List

from errors import CapabilityUnavailable
from records import Prediction

logger = logging.getLogger(__name__)


class YoloObjectDetector:
    """COCO object detector. Returns every box above a low floor, unfiltered by class."""

    def __init__(self, weights: str = "models/yolov8n.pt", conf: float = 0.1):
        self.weights = weights
        self.conf = conf
        self.model = None

    @property
    def is_loaded(self) -> bool:
        return self.model is not None

    def load(self):
        from ultralytics import YOLO

        logger.info(f"Loading YOLO weights from {self.weights}")
        self.model = YOLO(self.weights)

    def detect(self, frame_bgr) -> List[Prediction]:
        """Return [(label, score), ...] in the detector's own order."""
        if self.model is None:
            raise CapabilityUnavailable("object detector not loaded")

        results = self.model.predict(frame_bgr, conf=self.conf, verbose=False)
        r = results[0]
        if r.boxes is None:
            return []

        names = r.names if getattr(r, "names", None) else self.model.names
        out = []
        for b in r.boxes:
            cls = int(b.cls[0])
            out.append(Prediction(label=names.get(cls, f"class_{cls}"), score=float(b.conf[0])))
        return out
