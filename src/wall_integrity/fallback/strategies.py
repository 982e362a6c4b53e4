"""Default fallback strategies for offset, boolean and intersection failures.

Within each operation, strategies are ranked by priority; lower-ranked
ones accept more input but keep less quality.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from shapely.ops import nearest_points

from wall_integrity.errors import ErrorFactory, ErrorKind, GeometricError
from wall_integrity.fallback.registry import FallbackOperation, FallbackStrategy
from wall_integrity.models.geometry import Curve, Point2D, Polygon2D
from wall_integrity.models.wall import IntersectionData, IntersectionType, JoinType, WallSolid
from wall_integrity.ops import shapes
from wall_integrity.ops.polylines import (
    douglas_peucker,
    remove_consecutive_duplicates,
    snap_to_grid,
)


@dataclass
class OffsetRequest:
    baseline: Curve
    distance: float
    join_type: JoinType = JoinType.MITER
    tolerance: float = 1e-6


@dataclass
class BooleanRequest:
    operation: str
    solids: list[WallSolid]


@dataclass
class IntersectionRequest:
    walls: list[WallSolid]
    intersection_type: IntersectionType


@dataclass
class OffsetPair:
    left: Curve
    right: Curve
    join_type: JoinType


def _offset_pair(baseline: Curve, distance: float, join: JoinType) -> OffsetPair:
    return OffsetPair(
        left=shapes.offset_curve(baseline, distance, join),
        right=shapes.offset_curve(baseline, -distance, join),
        join_type=join,
    )


def _too_few_points(curve: Curve, minimum: int = 2) -> GeometricError | None:
    if len(curve.points) >= minimum:
        return None
    return ErrorFactory.degenerate_geometry_error(
        f"Curve has {len(curve.points)} points after cleanup",
        geometry_type="curve",
        degenerate_elements=[curve.id],
    )


# ---------------------------------------------------------------------------
# Offset
# ---------------------------------------------------------------------------

class SimplifiedGeometryOffset(FallbackStrategy):
    name = "simplified_geometry_offset"
    operation = FallbackOperation.OFFSET
    priority = 10
    quality_impact = 0.8

    def can_handle(self, operation, error):
        return operation == self.operation and error.kind in (
            ErrorKind.OFFSET_FAILURE,
            ErrorKind.NUMERICAL_INSTABILITY,
        )

    def run(self, request: OffsetRequest, error):
        tolerance = max(request.tolerance, abs(request.distance) * 0.01)
        points = douglas_peucker(request.baseline.points, tolerance)
        simplified = request.baseline.with_points(points)
        problem = _too_few_points(simplified)
        if problem is not None:
            return self.failed(problem)
        join = JoinType.BEVEL if request.join_type == JoinType.MITER else request.join_type
        pair = _offset_pair(simplified, request.distance, join)
        warnings = [
            f"Baseline simplified from {len(request.baseline.points)} to {len(points)} points"
        ]
        if join != request.join_type:
            warnings.append("Miter joins replaced by bevel joins")
        return self.succeeded(pair, warnings)

    def limitations(self):
        return ["Vertices closer than the simplification tolerance are dropped"]


class ReducedPrecisionOffset(FallbackStrategy):
    name = "reduced_precision_offset"
    operation = FallbackOperation.OFFSET
    priority = 8
    quality_impact = 0.7

    def can_handle(self, operation, error):
        return operation == self.operation and error.kind in (
            ErrorKind.NUMERICAL_INSTABILITY,
            ErrorKind.TOLERANCE_EXCEEDED,
        )

    def run(self, request: OffsetRequest, error):
        grid = request.tolerance * 100
        points = snap_to_grid(request.baseline.points, grid)
        points = remove_consecutive_duplicates(points, grid / 2, closed=request.baseline.closed)
        snapped = request.baseline.with_points(points)
        problem = _too_few_points(snapped)
        if problem is not None:
            return self.failed(problem)
        pair = _offset_pair(snapped, request.distance, request.join_type)
        return self.succeeded(pair, [f"Coordinates snapped to a {grid:.2e} grid"])


class SegmentedOffset(FallbackStrategy):
    """Offsets every segment on its own and joins neighbours at their midpoint."""

    name = "segmented_offset"
    operation = FallbackOperation.OFFSET
    priority = 6
    quality_impact = 0.75

    def can_handle(self, operation, error):
        return operation == self.operation and error.kind == ErrorKind.OFFSET_FAILURE

    def run(self, request: OffsetRequest, error):
        baseline = request.baseline
        points = remove_consecutive_duplicates(baseline.points, request.tolerance)
        problem = _too_few_points(baseline.with_points(points))
        if problem is not None:
            return self.failed(problem)
        left = self._side(points, request.distance)
        right = self._side(points, -request.distance)
        pair = OffsetPair(
            left=Curve(points=left, curve_type=baseline.curve_type),
            right=Curve(points=right, curve_type=baseline.curve_type),
            join_type=JoinType.BEVEL,
        )
        return self.succeeded(pair, [f"Offset computed over {len(points) - 1} independent segments"])

    @staticmethod
    def _side(points: list[Point2D], distance: float) -> list[Point2D]:
        moved: list[tuple[Point2D, Point2D]] = []
        for a, b in zip(points, points[1:]):
            length = a.distance_to(b)
            nx, ny = -(b.y - a.y) / length, (b.x - a.x) / length
            moved.append(
                (
                    a.moved_to(a.x + nx * distance, a.y + ny * distance, "segmented_offset"),
                    b.moved_to(b.x + nx * distance, b.y + ny * distance, "segmented_offset"),
                )
            )
        result = [moved[0][0]]
        for (_, end), (start, _) in zip(moved, moved[1:]):
            result.append(end.moved_to((end.x + start.x) / 2, (end.y + start.y) / 2, "segmented_offset"))
        result.append(moved[-1][1])
        return result

    def limitations(self):
        return ["Corners are approximated by the midpoint of adjacent segment offsets"]


class BasicPolygonOffset(FallbackStrategy):
    name = "basic_polygon_offset"
    operation = FallbackOperation.OFFSET
    priority = 4
    quality_impact = 0.6

    def run(self, request: OffsetRequest, error):
        pts = request.baseline.points
        if len(pts) < 2 or pts[0].distance_to(pts[-1]) <= request.tolerance:
            return self.failed(
                ErrorFactory.offset_error(
                    "Baseline endpoints coincide; no chord to offset",
                    offset_distance=request.distance,
                    join_type=request.join_type.value,
                    curve_type=request.baseline.curve_type.value,
                )
            )
        chord = request.baseline.with_points([pts[0], pts[-1]]).model_copy(update={"closed": False})
        pair = _offset_pair(chord, request.distance, JoinType.BEVEL)
        return self.succeeded(pair, ["Offset follows the straight chord between baseline endpoints"])

    def limitations(self):
        return ["Intermediate baseline vertices are ignored"]


# ---------------------------------------------------------------------------
# Boolean
# ---------------------------------------------------------------------------

def _wall_polygons(wall: WallSolid) -> list[Polygon2D]:
    usable = [p for p in wall.solid_geometry if len(p.vertices) >= 3]
    if usable:
        return usable
    return shapes.wall_outline(wall.baseline, wall.thickness)


def _simplified_polygons(wall: WallSolid, ratio: float) -> list[Polygon2D]:
    tolerance = max(wall.thickness, 0.0) * ratio
    result = []
    for polygon in _wall_polygons(wall):
        vertices = douglas_peucker(polygon.vertices, tolerance)
        result.append(polygon.with_vertices(vertices if len(vertices) >= 3 else polygon.vertices))
    return result


def _combined_solid(
    solids: list[WallSolid], polygons: list[Polygon2D], method: str, extra: dict[str, Any] | None = None
) -> WallSolid:
    base = solids[0]
    return base.healed(
        method,
        {"inputs": [s.id for s in solids], **(extra or {})},
        solid_geometry=polygons,
    )


def _no_solids() -> GeometricError:
    return ErrorFactory.boolean_error("No solids to combine", operation_type="union", input_count=0)


class SimplifiedBoolean(FallbackStrategy):
    name = "simplified_boolean"
    operation = FallbackOperation.BOOLEAN
    priority = 10
    quality_impact = 0.8

    def can_handle(self, operation, error):
        return operation == self.operation and error.kind == ErrorKind.BOOLEAN_FAILURE

    def run(self, request: BooleanRequest, error):
        if not request.solids:
            return self.failed(_no_solids())
        first = _simplified_polygons(request.solids[0], 0.01)
        others = [p for s in request.solids[1:] for p in _simplified_polygons(s, 0.01)]
        polygons = shapes.boolean(request.operation, first, others)
        combined = _combined_solid(request.solids, polygons, self.name)
        return self.succeeded(combined, ["Inputs simplified before boolean"])


class AlternativeAlgorithmBoolean(FallbackStrategy):
    """Recomputes every solid from its baseline before combining."""

    name = "alternative_algorithm_boolean"
    operation = FallbackOperation.BOOLEAN
    priority = 8
    quality_impact = 0.9

    def can_handle(self, operation, error):
        return operation == self.operation and error.kind == ErrorKind.BOOLEAN_FAILURE

    def run(self, request: BooleanRequest, error):
        if not request.solids:
            return self.failed(_no_solids())
        outlines = [shapes.wall_outline(s.baseline, s.thickness) for s in request.solids]
        others = [p for group in outlines[1:] for p in group]
        polygons = shapes.boolean(request.operation, outlines[0], others)
        combined = _combined_solid(request.solids, polygons, self.name)
        return self.succeeded(combined, ["Solids regenerated from baselines"])


class ApproximateBoolean(FallbackStrategy):
    name = "approximate_boolean"
    operation = FallbackOperation.BOOLEAN
    priority = 6
    quality_impact = 0.7

    def run(self, request: BooleanRequest, error):
        if not request.solids:
            return self.failed(_no_solids())
        grid = min(max(s.thickness, 0.0) for s in request.solids) * 0.01
        snapped = [
            [p.with_vertices(snap_to_grid(p.vertices, grid)) for p in _wall_polygons(s)]
            for s in request.solids
        ]
        others = [p for group in snapped[1:] for p in group]
        polygons = shapes.boolean(request.operation, snapped[0], others)
        combined = _combined_solid(request.solids, polygons, self.name)
        return self.succeeded(combined, [f"Vertices snapped to {grid:.3g} grid"])


class BasicUnion(FallbackStrategy):
    name = "basic_union"
    operation = FallbackOperation.BOOLEAN
    priority = 4
    quality_impact = 0.5

    def run(self, request: BooleanRequest, error):
        if not request.solids:
            return self.failed(_no_solids())
        polygons = [p for s in request.solids for p in _wall_polygons(s)]
        hull = shapes.convex_outline(polygons)
        warnings = ["Result is the convex outline of all inputs"]
        if request.operation != "union":
            warnings.append(f"Boolean {request.operation} approximated by union")
        return self.succeeded(_combined_solid(request.solids, [hull], self.name), warnings)

    def limitations(self):
        return ["Concave features and openings are lost"]


# ---------------------------------------------------------------------------
# Intersection
# ---------------------------------------------------------------------------

def junction_point(walls: list[WallSolid]) -> tuple[float, float]:
    """Where the first two baselines meet, or the midpoint of their closest approach."""
    if len(walls) < 2:
        box = walls[0].baseline.bounding_box
        return ((box.min_x + box.max_x) / 2, (box.min_y + box.max_y) / 2)
    a = shapes.to_linestring(walls[0].baseline)
    b = shapes.to_linestring(walls[1].baseline)
    crossing = a.intersection(b)
    if not crossing.is_empty:
        point = crossing.representative_point()
        return (point.x, point.y)
    pa, pb = nearest_points(a, b)
    return ((pa.x + pb.x) / 2, (pa.y + pb.y) / 2)


def merged_junction(
    walls: list[WallSolid],
    polygons: list[Polygon2D],
    intersection_type: IntersectionType,
    method: str,
    accuracy: float,
) -> WallSolid:
    """First wall carrying the merged solid and a record of the junction."""
    junction = IntersectionData(
        intersection_type=intersection_type,
        participating_walls=[w.id for w in walls],
        point=junction_point(walls),
        resolution_method=method,
        geometric_accuracy=accuracy,
    )
    base = walls[0]
    return base.healed(
        method,
        {"walls": [w.id for w in walls], "intersection_type": intersection_type.value},
        solid_geometry=polygons,
        intersection_data=[*base.intersection_data, junction],
    )


def _no_walls() -> GeometricError:
    return GeometricError(
        kind=ErrorKind.BOOLEAN_FAILURE,
        message="No walls at junction",
        operation="intersection",
    )


class ApproximateIntersection(FallbackStrategy):
    """Union with gap closing up to half the thickest wall."""

    name = "approximate_intersection"
    operation = FallbackOperation.INTERSECTION
    priority = 10
    quality_impact = 0.7

    def run(self, request: IntersectionRequest, error):
        if not request.walls:
            return self.failed(_no_walls())
        snap = max(w.thickness for w in request.walls) * 0.5
        if not (snap > 0 and math.isfinite(snap)):
            snap = 0.0
        polygons = shapes.union_all([p for w in request.walls for p in _wall_polygons(w)], snap=snap)
        wall = merged_junction(request.walls, polygons, request.intersection_type, self.name, 0.7)
        return self.succeeded(wall, [f"Gaps up to {2 * snap:.3g} closed at the junction"])


class SimplifiedIntersection(FallbackStrategy):
    name = "simplified_intersection"
    operation = FallbackOperation.INTERSECTION
    priority = 8
    quality_impact = 0.6

    def run(self, request: IntersectionRequest, error):
        if not request.walls:
            return self.failed(_no_walls())
        polygons: list[Polygon2D] = []
        for wall in request.walls:
            tolerance = max(wall.thickness, 0.0) * 0.01
            baseline = wall.baseline.with_points(douglas_peucker(wall.baseline.points, tolerance))
            polygons.extend(shapes.wall_outline(baseline, wall.thickness, JoinType.MITER))
        merged = shapes.union_all(polygons)
        wall = merged_junction(request.walls, merged, request.intersection_type, self.name, 0.6)
        return self.succeeded(wall, ["Walls rebuilt from simplified baselines"])


class BasicOverlap(FallbackStrategy):
    name = "basic_overlap"
    operation = FallbackOperation.INTERSECTION
    priority = 4
    quality_impact = 0.4

    def run(self, request: IntersectionRequest, error):
        if not request.walls:
            return self.failed(_no_walls())
        polygons = [p for w in request.walls for p in _wall_polygons(w)]
        wall = merged_junction(request.walls, polygons, request.intersection_type, self.name, 0.4)
        return self.succeeded(wall, ["Walls overlapped without junction cleanup"])

    def limitations(self):
        return ["Overlapping solids are not merged"]


def default_strategies() -> list[FallbackStrategy]:
    return [
        SimplifiedGeometryOffset(),
        ReducedPrecisionOffset(),
        SegmentedOffset(),
        BasicPolygonOffset(),
        SimplifiedBoolean(),
        AlternativeAlgorithmBoolean(),
        ApproximateBoolean(),
        BasicUnion(),
        ApproximateIntersection(),
        SimplifiedIntersection(),
        BasicOverlap(),
    ]
