"""
Pytest configuration: fake perception capabilities so no model is ever loaded.
"""
import os
import sys
import threading

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import MonitorConfig  # noqa: E402
from errors import CameraAccessDenied, CapabilityLost  # noqa: E402
from records import FaceSample, Prediction  # noqa: E402


def make_landmarks(horizontal=0.0, vertical=0.0, span=100.0):
    """68 points whose eye clusters are `span` apart and whose nose gives the deviations."""
    pts = np.zeros((68, 2), dtype=np.float64)
    pts[36:42] = [100.0, 100.0]
    pts[42:48] = [100.0 + span, 100.0]
    center_x = 100.0 + span / 2
    pts[30] = [center_x + horizontal * span, 100.0 + vertical * span]
    return pts


def make_face(horizontal=0.0, vertical=0.0, confidence=0.9):
    return FaceSample(landmarks=make_landmarks(horizontal, vertical), confidence=confidence)


class FakeObjectDetector:
    def __init__(self, predictions=None, error=None, load_error=None):
        self.predictions = list(predictions or [])
        self.error = error
        self.load_error = load_error
        self.loaded = False
        self.load_calls = 0
        self.calls = 0
        self.gate = None  # threading.Event, blocks detect() until set

    def load(self):
        self.load_calls += 1
        if self.load_error:
            raise self.load_error
        self.loaded = True

    def detect(self, frame):
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error:
            raise self.error
        return [Prediction(label, score) for label, score in self.predictions]


class FakeFaceLandmarker:
    def __init__(self, face=None, error=None, load_error=None):
        self.face = face
        self.error = error
        self.load_error = load_error
        self.loaded = False
        self.load_calls = 0

    def load(self):
        self.load_calls += 1
        if self.load_error:
            raise self.load_error
        self.loaded = True

    def detect(self, frame):
        if self.error:
            raise self.error
        return self.face


class FakeCamera:
    def __init__(self, deny=False):
        self.deny = deny
        self.opened = False
        self.open_calls = 0
        self.release_calls = 0
        self.frame = np.zeros((480, 640, 3), dtype=np.uint8)

    def open(self):
        self.open_calls += 1
        if self.deny:
            raise CameraAccessDenied("Camera access denied. Please allow camera permissions.")
        self.opened = True

    def read(self):
        if not self.opened:
            raise CapabilityLost("camera has been released")
        return self.frame

    def release(self):
        self.release_calls += 1
        self.opened = False


@pytest.fixture
def one_student():
    return FakeObjectDetector([("person", 0.9)])


@pytest.fixture
def attentive_face():
    return FakeFaceLandmarker(make_face(0.0, 0.0))


@pytest.fixture
def camera():
    return FakeCamera()


@pytest.fixture
def slow_config():
    """Timers long enough that only explicit run_cycle() calls analyze."""
    return MonitorConfig(analysis_interval=3.0, uptime_interval=3600.0, initial_delay=3600.0)


@pytest.fixture
def gate():
    event = threading.Event()
    yield event
    event.set()
