import os
from dataclasses import dataclass, field
from typing import Tuple

from dotenv import load_dotenv

PROHIBITED_KEYWORDS = (
    "cell phone", "phone", "mobile",
    "book",
    "laptop", "computer",
    "tv", "monitor",
    "keyboard", "mouse",
    "remote",
)


@dataclass
class Thresholds:
    detection_confidence: float = 0.4  # strict: scores equal to this are dropped
    horizontal_deviation: float = 0.3
    vertical_deviation: float = 0.4
    looking_away_seconds: int = 6
    raw_detection_limit: int = 10
    log_capacity: int = 20
    prohibited_keywords: Tuple[str, ...] = PROHIBITED_KEYWORDS
    rearm_after_fire: bool = False


@dataclass
class MonitorConfig:
    analysis_interval: float = 3.0
    uptime_interval: float = 1.0
    initial_delay: float = 1.0
    yolo_weights: str = "models/yolov8n.pt"
    yolo_conf: float = 0.1
    landmark_model: str = "models/shape_predictor_68_face_landmarks.dat"
    capture_width: int = 1280
    capture_height: int = 720
    thresholds: Thresholds = field(default_factory=Thresholds)

    @property
    def debounce_step(self) -> int:
        """Seconds credited to the looking-away accumulator per cycle."""
        return max(1, int(round(self.analysis_interval)))

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        load_dotenv()
        defaults = cls()
        thresholds = Thresholds(
            looking_away_seconds=int(os.getenv("PROCTOR_LOOKING_AWAY_SECONDS", 6)),
            rearm_after_fire=os.getenv("PROCTOR_REARM_AFTER_FIRE", "0").lower() in ("1", "true", "yes"),
        )
        return cls(
            analysis_interval=float(os.getenv("PROCTOR_ANALYSIS_INTERVAL", defaults.analysis_interval)),
            uptime_interval=float(os.getenv("PROCTOR_UPTIME_INTERVAL", defaults.uptime_interval)),
            initial_delay=float(os.getenv("PROCTOR_INITIAL_DELAY", defaults.initial_delay)),
            yolo_weights=os.getenv("PROCTOR_YOLO_WEIGHTS", defaults.yolo_weights),
            yolo_conf=float(os.getenv("PROCTOR_YOLO_CONF", defaults.yolo_conf)),
            landmark_model=os.getenv("PROCTOR_LANDMARK_MODEL", defaults.landmark_model),
            capture_width=int(os.getenv("PROCTOR_CAPTURE_WIDTH", defaults.capture_width)),
            capture_height=int(os.getenv("PROCTOR_CAPTURE_HEIGHT", defaults.capture_height)),
            thresholds=thresholds,
        )
