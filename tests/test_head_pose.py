"""
Tests for HeadPoseEstimator geometry and direction classification.
"""

import numpy as np
import pytest

from conftest import make_face, make_landmarks
from detectors.head_pose import HeadPoseEstimator
from errors import GeometryDegenerate
from records import FaceSample, GazeDirection


class TestDeviations:
    def test_centered_face(self):
        h, v = HeadPoseEstimator().deviations(make_landmarks(0.0, 0.0))
        assert h == pytest.approx(0.0)
        assert v == pytest.approx(0.0)

    def test_normalized_by_eye_span(self):
        """Same pose at a different distance gives the same deviation"""
        est = HeadPoseEstimator()
        near = est.deviations(make_landmarks(0.2, 0.1, span=200.0))
        far = est.deviations(make_landmarks(0.2, 0.1, span=50.0))
        assert near == pytest.approx(far)
        assert near == pytest.approx((0.2, 0.1))

    def test_eye_centers_are_cluster_means(self):
        pts = make_landmarks()
        pts[36:42, 0] = [90, 95, 100, 105, 110, 100]  # mean 100
        pts[42:48, 0] = [190, 195, 200, 205, 210, 200]  # mean 200
        pts[30] = [180.0, 100.0]
        h, _ = HeadPoseEstimator().deviations(pts)
        assert h == pytest.approx(0.3)

    def test_cluster_span_is_narrower_than_corner_span(self):
        """Outer corners 100px apart, cluster means 70px apart: deviation scales by 100/70"""
        pts = make_landmarks()
        pts[36:42] = [[0, 100], [10, 95], [20, 95], [30, 100], [20, 105], [10, 105]]
        pts[42:48] = [[70, 100], [80, 95], [90, 95], [100, 100], [90, 105], [80, 105]]
        pts[30] = [57.0, 100.0]
        h, _ = HeadPoseEstimator().deviations(pts)
        corner_based = (57.0 - 50.0) / (pts[45, 0] - pts[36, 0])
        assert h == pytest.approx(0.1)
        assert h / corner_based == pytest.approx(100.0 / 70.0)

    def test_zero_eye_span_is_degenerate(self):
        with pytest.raises(GeometryDegenerate):
            HeadPoseEstimator().deviations(make_landmarks(span=0.0))

    def test_short_landmark_set_is_degenerate(self):
        with pytest.raises(GeometryDegenerate):
            HeadPoseEstimator().deviations(np.zeros((5, 2)))


class TestClassification:
    @pytest.mark.parametrize(
        "h, v, away, direction",
        [
            (0.35, 0.0, True, GazeDirection.LOOKING_RIGHT),
            (-0.35, 0.0, True, GazeDirection.LOOKING_LEFT),
            (0.29, 0.0, False, GazeDirection.LOOKING_AT_SCREEN),
            (0.3, 0.0, False, GazeDirection.LOOKING_AT_SCREEN),
            (0.0, 0.45, True, GazeDirection.LOOKING_DOWN),
            (0.0, -0.45, True, GazeDirection.LOOKING_UP),
            (0.0, 0.4, False, GazeDirection.LOOKING_AT_SCREEN),
        ],
    )
    def test_thresholds(self, h, v, away, direction):
        result = HeadPoseEstimator().estimate(make_face(h, v))
        assert result.face_detected is True
        assert result.looking_away is away
        assert result.direction is direction

    def test_horizontal_takes_precedence(self):
        result = HeadPoseEstimator().estimate(make_face(-0.5, 0.9))
        assert result.direction is GazeDirection.LOOKING_LEFT

    def test_reports_raw_values_and_confidence(self):
        result = HeadPoseEstimator().estimate(make_face(0.1, -0.2, confidence=0.77))
        assert result.horizontal_deviation == pytest.approx(0.1)
        assert result.vertical_deviation == pytest.approx(-0.2)
        assert result.confidence == pytest.approx(0.77)


class TestEstimate:
    def test_no_face_counts_as_looking_away(self):
        result = HeadPoseEstimator().estimate(None)
        assert result.face_detected is False
        assert result.looking_away is True
        assert result.direction is GazeDirection.NO_FACE_DETECTED

    def test_degenerate_landmarks_yield_none(self):
        face = FaceSample(landmarks=make_landmarks(span=0.0), confidence=0.9)
        assert HeadPoseEstimator().estimate(face) is None
