"""
One analysis cycle: run both perception models on the current frame and fold
their output into a single DetectionResult.
"""

import asyncio
import logging
from typing import Iterable, List, Optional, Tuple

from config import Thresholds
from detectors.head_pose import HeadPoseEstimator
from errors import CapabilityLost, InferenceFailure
from records import DetectionResult, Prediction, Status

logger = logging.getLogger(__name__)


def match_prohibited(predictions: Iterable[Prediction], keywords) -> Tuple[str, ...]:
    """Distinct labels containing any keyword (case-insensitive), first-seen order."""
    found: List[str] = []
    for p in predictions:
        label = p.label.lower()
        if any(k in label for k in keywords) and p.label not in found:
            found.append(p.label)
    return tuple(found)


class FrameAnalyzer:
    def __init__(self, object_detector, face_landmarker, thresholds: Optional[Thresholds] = None):
        self.objects = object_detector
        self.faces = face_landmarker
        self.t = thresholds or Thresholds()
        self.head_pose = HeadPoseEstimator(self.t)

    def summarize(self, predictions, head_pose) -> DetectionResult:
        """Apply the confidence filter and the status rule to raw model output."""
        kept = [p for p in predictions if p.score > self.t.detection_confidence]
        people = sum(1 for p in kept if p.label == "person")
        prohibited = match_prohibited(kept, self.t.prohibited_keywords)

        violating = (
            people != 1
            or len(prohibited) > 0
            or (head_pose is not None and head_pose.looking_away)
        )
        return DetectionResult(
            people_count=people,
            prohibited_objects=prohibited,
            raw_detections=tuple(kept[: self.t.raw_detection_limit]),
            head_pose=head_pose,
            status=Status.VIOLATION if violating else Status.CLEAR,
        )

    async def analyze(self, frame) -> DetectionResult:
        """
        Run object detection then face landmarks on frame.

        Model calls block, so each one is pushed to a worker thread. Any model
        error other than CapabilityLost becomes InferenceFailure.
        """
        try:
            predictions = await asyncio.to_thread(self.objects.detect, frame)
            face = await asyncio.to_thread(self.faces.detect, frame)
        except CapabilityLost:
            raise
        except Exception as e:
            raise InferenceFailure(f"Analysis failed: {e}") from e

        head_pose = self.head_pose.estimate(face)
        result = self.summarize(predictions, head_pose)
        logger.debug(
            f"Cycle: people={result.people_count} prohibited={list(result.prohibited_objects)} "
            f"gaze={head_pose.direction.value if head_pose else 'n/a'} status={result.status.value}"
        )
        return result
