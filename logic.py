import logging
import time
from typing import List, Optional, Tuple

from config import Thresholds
from records import DebounceState, DetectionResult, Severity, ViolationEvent, ViolationKind

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ViolationClassifier:
    """Rule engine: one DetectionResult in, zero or more violation events out.

    Stateless apart from its configuration; the looking-away accumulator is
    passed in and handed back so the caller owns it.
    """
    def __init__(self, thresholds: Optional[Thresholds] = None, step_seconds: int = 3):
        self.t = thresholds or Thresholds()
        self.step = step_seconds

    def classify(
        self, result: DetectionResult, debounce: DebounceState, now: Optional[float] = None
    ) -> Tuple[List[ViolationEvent], DebounceState]:
        ts = time.strftime(TIMESTAMP_FORMAT, time.localtime(time.time() if now is None else now))
        events = []

        def emit(kind, text, severity):
            events.append(ViolationEvent(timestamp=ts, type=text, severity=severity, kind=kind))

        # Absence / crowd
        if result.people_count == 0:
            emit(ViolationKind.NO_STUDENT, "No student detected in frame", Severity.HIGH)
        if result.people_count > 1:
            emit(
                ViolationKind.MULTIPLE_PEOPLE,
                f"Multiple people detected ({result.people_count})",
                Severity.CRITICAL,
            )

        for label in result.prohibited_objects:
            emit(ViolationKind.PROHIBITED_OBJECT, f"Prohibited object: {label}", Severity.HIGH)

        # Gaze debounce; a missing face counts as looking away, missing head-pose data does not
        pose = result.head_pose
        if pose is not None and pose.looking_away:
            away = debounce.consecutive_looking_away_seconds + self.step
            if away >= self.t.looking_away_seconds:
                emit(
                    ViolationKind.LOOKING_AWAY,
                    f"Student looking away: {pose.direction.value}",
                    Severity.MEDIUM,
                )
                if self.t.rearm_after_fire:
                    away = 0
        else:
            away = 0

        for e in events:
            logger.warning(f"Violation [{e.severity.value}] {e.type}")
        return events, DebounceState(consecutive_looking_away_seconds=away)
