"""Value types passed between the detectors, the rule engine and the UI."""

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional, Tuple

import numpy as np


class Prediction(NamedTuple):
    label: str
    score: float


class Status(str, Enum):
    CLEAR = "clear"
    VIOLATION = "violation"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class GazeDirection(str, Enum):
    LOOKING_AT_SCREEN = "Looking at screen"
    LOOKING_LEFT = "Looking left"
    LOOKING_RIGHT = "Looking right"
    LOOKING_UP = "Looking up"
    LOOKING_DOWN = "Looking down"
    NO_FACE_DETECTED = "No face detected"


class ViolationKind(str, Enum):
    NO_STUDENT = "no_student"
    MULTIPLE_PEOPLE = "multiple_people"
    PROHIBITED_OBJECT = "prohibited_object"
    LOOKING_AWAY = "looking_away"


@dataclass(frozen=True)
class FaceSample:
    """One face from the landmark model: (68, 2) points in pixel space."""
    landmarks: np.ndarray
    confidence: float
    box: Optional[Tuple[int, int, int, int]] = None


@dataclass(frozen=True)
class HeadPoseResult:
    face_detected: bool
    looking_away: bool
    direction: GazeDirection
    horizontal_deviation: float = 0.0
    vertical_deviation: float = 0.0
    confidence: float = 0.0


@dataclass(frozen=True)
class DetectionResult:
    people_count: int
    prohibited_objects: Tuple[str, ...]
    raw_detections: Tuple[Prediction, ...]
    head_pose: Optional[HeadPoseResult]
    status: Status

    @property
    def student_visible(self) -> bool:
        return self.people_count == 1


@dataclass(frozen=True)
class ViolationEvent:
    timestamp: str
    type: str
    severity: Severity
    kind: ViolationKind


@dataclass(frozen=True)
class DebounceState:
    consecutive_looking_away_seconds: int = 0


@dataclass
class SessionStats:
    scans: int = 0
    violations: int = 0
    uptime_seconds: int = 0
    looking_away_events: int = 0


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything the dashboard renders, copied out of the controller."""
    state: str
    stats: SessionStats
    detection: Optional[DetectionResult]
    violations: Tuple[ViolationEvent, ...]
    error: Optional[str]
    analyzing: bool
    objects_ready: bool
    faces_ready: bool
    debounce: DebounceState = field(default_factory=DebounceState)
    loading: bool = False
