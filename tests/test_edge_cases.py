"""Tests for the edge-case detector."""

import pytest
from pydantic import ValidationError

from wall_integrity.config import EdgeCaseConfig
from wall_integrity.errors import Severity
from wall_integrity.models import Curve, WallSolid
from wall_integrity.validators import EdgeCaseDetector, EdgeCaseType


def by_type(results):
    return {r.edge_case_type: r for r in results}


@pytest.fixture
def detector():
    return EdgeCaseDetector()


class TestCleanGeometry:
    def test_straight_two_point_curve(self, detector):
        assert detector.detect_curve_edge_cases(Curve.from_coords([(0, 0), (1000, 0)])) == []

    def test_right_angle(self, detector):
        curve = Curve.from_coords([(0, 0), (1000, 0), (1000, 1000)])
        assert detector.detect_curve_edge_cases(curve) == []

    def test_closed_rectangle(self, detector):
        curve = Curve.from_coords([(0, 0), (10, 0), (10, 5), (0, 5)], closed=True)
        assert detector.detect_curve_edge_cases(curve) == []


class TestSegmentChecks:
    def test_zero_length_segment(self, detector):
        found = by_type(detector.detect_curve_edge_cases(Curve.from_coords([(0, 0), (0, 0), (10, 0)])))
        zero = found[EdgeCaseType.ZERO_LENGTH_SEGMENT]
        assert zero.severity == Severity.WARNING
        assert zero.affected_elements == ["segment_0"]
        assert zero.description == "Found 1 zero-length segments"
        assert zero.can_auto_fix

    def test_micro_segment(self, detector):
        found = by_type(detector.detect_curve_edge_cases(Curve.from_coords([(0, 0), (5e-6, 0), (10, 0)])))
        micro = found[EdgeCaseType.MICRO_SEGMENT]
        assert micro.affected_elements == ["segment_0"]
        assert EdgeCaseType.ZERO_LENGTH_SEGMENT not in found

    def test_indices_follow_segment_order(self, detector):
        curve = Curve.from_coords([(0, 0), (10, 0), (10, 0), (10, 10), (0, 10)], closed=True)
        zero = by_type(detector.detect_curve_edge_cases(curve))[EdgeCaseType.ZERO_LENGTH_SEGMENT]
        assert zero.affected_elements == ["segment_1"]

    def test_closing_segment_checked(self, detector):
        curve = Curve.from_coords([(0, 0), (10, 0), (10, 10), (5e-6, 0)], closed=True)
        micro = by_type(detector.detect_curve_edge_cases(curve))[EdgeCaseType.MICRO_SEGMENT]
        assert "segment_3" in micro.affected_elements


class TestDegenerate:
    def test_single_point(self, detector):
        found = by_type(detector.detect_curve_edge_cases(Curve.from_coords([(1, 1)])))
        degenerate = found[EdgeCaseType.DEGENERATE_GEOMETRY]
        assert degenerate.severity == Severity.ERROR
        assert degenerate.description == "Curve has less than 2 points"
        assert not degenerate.can_auto_fix

    def test_identical_points(self, detector):
        found = by_type(detector.detect_curve_edge_cases(Curve.from_coords([(1, 1), (1, 1), (1, 1)])))
        assert found[EdgeCaseType.DEGENERATE_GEOMETRY].description == "All points in curve are identical"

    def test_short_curve(self, detector):
        found = by_type(detector.detect_curve_edge_cases(Curve.from_coords([(0, 0), (5e-7, 0)])))
        assert "below minimum threshold" in found[EdgeCaseType.DEGENERATE_GEOMETRY].description


class TestSelfIntersection:
    def test_crossing_polyline(self, detector):
        curve = Curve.from_coords([(0, 0), (10, 10), (10, 0), (0, 10)])
        found = by_type(detector.detect_curve_edge_cases(curve))
        hit = found[EdgeCaseType.SELF_INTERSECTION]
        assert hit.severity == Severity.ERROR
        assert hit.affected_elements == ["intersection_0_2"]
        assert not hit.can_auto_fix

    def test_closed_bowtie(self, detector):
        curve = Curve.from_coords([(0, 0), (10, 10), (10, 0), (0, 10)], closed=True)
        assert EdgeCaseType.SELF_INTERSECTION in by_type(detector.detect_curve_edge_cases(curve))

    def test_closed_rectangle_has_none(self, detector):
        curve = Curve.from_coords([(0, 0), (10, 0), (10, 10), (0, 10)], closed=True)
        assert EdgeCaseType.SELF_INTERSECTION not in by_type(detector.detect_curve_edge_cases(curve))


class TestExtremeAngles:
    def test_nearly_straight_is_warning(self, detector):
        curve = Curve.from_coords([(0, 0), (10, 0), (20, 0.005)])
        angle = by_type(detector.detect_curve_edge_cases(curve))[EdgeCaseType.EXTREME_ANGLE]
        assert angle.severity == Severity.WARNING
        assert angle.affected_elements == ["angle_1"]

    def test_exact_collinear_escalates(self, detector):
        curve = Curve.from_coords([(0, 0), (5, 0), (10, 0)])
        angle = by_type(detector.detect_curve_edge_cases(curve))[EdgeCaseType.EXTREME_ANGLE]
        assert angle.severity == Severity.ERROR

    def test_reversal_spike(self, detector):
        curve = Curve.from_coords([(0, 0), (10, 0), (0, 1e-9)])
        angle = by_type(detector.detect_curve_edge_cases(curve))[EdgeCaseType.EXTREME_ANGLE]
        assert angle.severity == Severity.ERROR
        assert angle.can_auto_fix

    def test_zero_length_neighbour_not_an_angle(self, detector):
        curve = Curve.from_coords([(0, 0), (0, 0), (10, 0), (10, 10)])
        assert EdgeCaseType.EXTREME_ANGLE not in by_type(detector.detect_curve_edge_cases(curve))


class TestCoincidentPoints:
    def test_pair_reported(self, detector):
        curve = Curve.from_coords([(0, 0), (1e-9, 0), (10, 0)])
        found = by_type(detector.detect_curve_edge_cases(curve))
        coincident = found[EdgeCaseType.COINCIDENT_POINTS]
        assert coincident.affected_elements == ["points_0_1"]
        assert coincident.severity == Severity.WARNING
        assert coincident.description == "Found 1 coincident point pairs"

    def test_non_consecutive_pair(self, detector):
        curve = Curve.from_coords([(0, 0), (10, 0), (10, 10), (0, 0)])
        coincident = by_type(detector.detect_curve_edge_cases(curve))[EdgeCaseType.COINCIDENT_POINTS]
        assert coincident.affected_elements == ["points_0_3"]


class TestNonFinite:
    def test_nan_coordinates_do_not_raise(self, detector):
        curve = Curve.from_coords([(0, 0), (float("nan"), 0), (10, 0)])
        assert detector.detect_curve_edge_cases(curve) == []

    def test_infinite_coordinates_do_not_raise(self, detector):
        curve = Curve.from_coords([(0, 0), (float("inf"), 0), (10, 0)])
        assert detector.detect_curve_edge_cases(curve) == []


class TestWallSolid:
    def test_offsets_prefixed(self, detector):
        wall = WallSolid(
            baseline=Curve.from_coords([(0, 0), (1000, 0)]),
            thickness=200,
            left_offset=Curve.from_coords([(0, 100), (0, 100), (1000, 100)]),
        )
        results = detector.detect_wall_solid_edge_cases(wall)
        assert any(r.description.startswith("Left offset: Found 1 zero-length") for r in results)

    def test_thin_wall(self, detector):
        wall = WallSolid(baseline=Curve.from_coords([(0, 0), (1000, 0)]), thickness=0)
        found = by_type(detector.detect_wall_solid_edge_cases(wall))
        thin = found[EdgeCaseType.NUMERICAL_INSTABILITY]
        assert thin.severity == Severity.ERROR
        assert thin.affected_elements == [wall.id]

    def test_normal_wall(self, detector):
        wall = WallSolid(baseline=Curve.from_coords([(0, 0), (1000, 0)]), thickness=200)
        assert detector.detect_wall_solid_edge_cases(wall) == []


class TestConfig:
    def test_update_config(self, detector):
        detector.update_config(min_segment_length=1.0)
        assert detector.config.min_segment_length == 1.0
        found = by_type(detector.detect_curve_edge_cases(Curve.from_coords([(0, 0), (0.5, 0), (10, 0)])))
        assert EdgeCaseType.ZERO_LENGTH_SEGMENT in found

    def test_invalid_update_rejected(self, detector):
        with pytest.raises(ValidationError):
            detector.update_config(min_segment_length=-1)
        assert detector.config.min_segment_length == 1e-6

    def test_config_copy(self, detector):
        detector.config.min_segment_length = 5.0
        assert detector.config.min_segment_length == 1e-6

    def test_micro_length_follows_min(self):
        assert EdgeCaseConfig(min_segment_length=0.5).micro_segment_length == 5.0
