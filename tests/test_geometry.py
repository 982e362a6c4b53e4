"""Tests for geometric primitives and wall models."""

import math

from wall_integrity.models import (
    Curve,
    HealingOperation,
    Point2D,
    Polygon2D,
    QualityMetrics,
    WallSolid,
)


class TestPoint2D:
    def test_distance(self):
        assert Point2D(x=0, y=0).distance_to(Point2D(x=3, y=4)) == 5.0

    def test_equality_within_tolerance(self):
        assert Point2D(x=1.0, y=2.0) == Point2D(x=1.0 + 1e-8, y=2.0)
        assert Point2D(x=1.0, y=2.0) != Point2D(x=1.1, y=2.0)

    def test_defaults(self):
        p = Point2D(x=1, y=1)
        assert p.tolerance == 1e-6
        assert p.accuracy == 1.0
        assert p.validated is False
        assert p.creation_method == "manual"

    def test_accepts_non_finite(self):
        p = Point2D(x=float("nan"), y=float("inf"))
        assert math.isnan(p.x)


class TestCurve:
    def test_open_length(self):
        curve = Curve.from_coords([(0, 0), (10, 0), (10, 5)])
        assert math.isclose(curve.length, 15.0)

    def test_closed_length_includes_closing_segment(self):
        curve = Curve.from_coords([(0, 0), (10, 0), (10, 5), (0, 5)], closed=True)
        assert math.isclose(curve.length, 30.0)
        assert len(list(curve.segments())) == 4

    def test_closed_with_repeated_first_point(self):
        curve = Curve.from_coords([(0, 0), (10, 0), (10, 5), (0, 0)], closed=True)
        assert len(list(curve.segments())) == 3

    def test_bounding_box(self):
        box = Curve.from_coords([(1, 2), (5, -3), (0, 4)]).bounding_box
        assert (box.min_x, box.min_y, box.max_x, box.max_y) == (0, -3, 5, 4)
        assert box.width == 5

    def test_with_points_keeps_id(self):
        curve = Curve.from_coords([(0, 0), (1, 0)])
        moved = curve.with_points([Point2D(x=2, y=2), Point2D(x=3, y=3)])
        assert moved.id == curve.id
        assert curve.points[0].x == 0

    def test_invalid_curve_accepted(self):
        assert Curve(points=[]).length == 0.0


class TestPolygon2D:
    def test_clockwise_square(self):
        square = Polygon2D.from_coords([(0, 0), (0, 10), (10, 10), (10, 0)])
        assert square.is_clockwise
        assert math.isclose(square.signed_area, -100.0)
        assert math.isclose(square.area, 100.0)
        assert math.isclose(square.perimeter, 40.0)

    def test_counter_clockwise(self):
        square = Polygon2D.from_coords([(0, 0), (10, 0), (10, 10), (0, 10)])
        assert not square.is_clockwise

    def test_holes_reduce_area(self):
        square = Polygon2D.from_coords([(0, 0), (0, 10), (10, 10), (10, 0)])
        holed = square.model_copy(
            update={"holes": [[Point2D(x=2, y=2), Point2D(x=4, y=2), Point2D(x=4, y=4), Point2D(x=2, y=4)]]}
        )
        assert math.isclose(holed.area, 96.0)

    def test_degenerate_allowed(self):
        assert Polygon2D.from_coords([(0, 0), (1, 1)]).area == 0.0


class TestWallSolid:
    def _wall(self):
        return WallSolid(
            baseline=Curve.from_coords([(0, 0), (1000, 0)]),
            thickness=200,
            solid_geometry=[Polygon2D.from_coords([(0, -100), (0, 100), (1000, 100), (1000, -100)])],
        )

    def test_counts(self):
        wall = self._wall()
        assert wall.vertex_count == 6
        assert wall.complexity == 6
        assert wall.quality == QualityMetrics()

    def test_non_positive_thickness_accepted(self):
        wall = WallSolid(baseline=Curve.from_coords([(0, 0), (1, 0)]), thickness=-5)
        assert wall.thickness == -5

    def test_healed_appends_history_without_mutating(self):
        wall = self._wall()
        healed = wall.healed("test_fix", {"note": 1}, thickness=300)
        assert healed.thickness == 300
        assert wall.thickness == 200
        assert wall.healing_history == []
        assert isinstance(healed.healing_history[-1], HealingOperation)
        assert healed.healing_history[-1].operation_type == "test_fix"

    def test_json_round_trip(self):
        wall = self._wall()
        restored = WallSolid.model_validate_json(wall.model_dump_json())
        assert restored.baseline.points == wall.baseline.points
        assert restored.thickness == 200
