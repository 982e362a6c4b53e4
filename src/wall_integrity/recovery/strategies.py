"""Named recovery strategies for wall solids.

Every strategy is a pure function ``(wall, error) -> StrategyOutcome | None``.
``None`` means the wall has nothing this strategy can fix. A strategy that
cannot complete returns a failed outcome via ``StrategyOutcome.failure``.
Successful outcomes carry a healed copy with a ``HealingOperation`` appended.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from wall_integrity.errors import ErrorKind, GeometricError
from wall_integrity.models.geometry import Polygon2D, points_from_coords
from wall_integrity.models.wall import JoinType, WallSolid
from wall_integrity.ops import shapes
from wall_integrity.ops.polylines import (
    clamp_coordinates,
    douglas_peucker,
    filter_short_segments,
    remove_consecutive_duplicates,
)
from wall_integrity.ops.segments import find_self_intersections, remove_self_intersections

DEFAULT_THICKNESS = 100.0
MIN_SEGMENT = 1e-6
MAX_COORDINATE = 1e6
DUPLICATE_TOLERANCE = 1e-10
SIMPLIFICATION_RATIO = 0.01

MINIMAL_BASELINE = ((0.0, 0.0), (100.0, 0.0))
MINIMAL_POLYGON = ((0.0, 0.0), (0.0, 100.0), (100.0, 100.0), (100.0, 0.0))  # clockwise


@dataclass
class StrategyOutcome:
    recovered_data: Any
    quality_impact: float
    warnings: list[str] = field(default_factory=list)
    success: bool = True

    @classmethod
    def failure(cls, wall: WallSolid, reason: str) -> StrategyOutcome:
        return cls(recovered_data=wall, quality_impact=0.0, warnings=[reason], success=False)


@dataclass(frozen=True)
class RecoveryStrategy:
    """A named repair with the error kinds it addresses."""

    name: str
    description: str
    applicable_kinds: frozenset[ErrorKind]
    priority: int
    estimated_impact: float
    apply: Callable[[WallSolid, GeometricError], Optional[StrategyOutcome]]
    requires_user_input: bool = False

    def can_handle(self, kind: ErrorKind) -> bool:
        return kind in self.applicable_kinds


def _ratio(removed: int, original: int) -> float:
    return removed / original if original else 0.0


# ---------------------------------------------------------------------------
# Strategy functions
# ---------------------------------------------------------------------------

def recover_degenerate_geometry(wall: WallSolid, error: GeometricError) -> StrategyOutcome | None:
    """Minimal baseline, default thickness and a rebuilt solid where missing."""
    changes: dict[str, Any] = {}
    applied: list[str] = []
    impact = 0.0
    baseline = wall.baseline

    if len(baseline.points) < 2 or not baseline.length >= MIN_SEGMENT:
        baseline = baseline.with_points(points_from_coords(MINIMAL_BASELINE, "recovery"))
        changes["baseline"] = baseline
        applied.append("minimal_baseline")
        impact += 0.4

    thickness = wall.thickness
    if not thickness > 0:
        thickness = DEFAULT_THICKNESS
        changes["thickness"] = thickness
        applied.append("default_thickness")
        impact += 0.2

    if not wall.solid_geometry or any(len(p.vertices) < 3 for p in wall.solid_geometry):
        changes["solid_geometry"] = shapes.wall_outline(baseline, thickness)
        applied.append("minimal_solid")
        impact += 0.3

    if not changes:
        return None
    return StrategyOutcome(
        recovered_data=wall.healed("degenerate_geometry_recovery", {"applied": applied}, **changes),
        quality_impact=impact,
    )


def resolve_self_intersections(wall: WallSolid, error: GeometricError) -> StrategyOutcome | None:
    """Drop baseline points until no segments cross."""
    baseline = wall.baseline
    original = len(baseline.points)
    points, removed = remove_self_intersections(baseline.points, baseline.closed)
    warnings: list[str] = []

    if removed == 0 and wall.quality.self_intersection_count == 0:
        return None
    if find_self_intersections(points, baseline.closed):
        return StrategyOutcome.failure(wall, "point removal cannot untangle the baseline; redraw it")

    changes: dict[str, Any] = {
        "quality": wall.quality.model_copy(update={"self_intersection_count": 0}),
    }
    if removed:
        changes["baseline"] = baseline.with_points(points)
    else:
        warnings.append("Baseline has no crossings; cleared recorded self-intersection count")
    return StrategyOutcome(
        recovered_data=wall.healed(
            "self_intersection_resolution", {"removed_points": removed}, **changes
        ),
        quality_impact=_ratio(removed, original),
        warnings=warnings,
    )


def recover_numerical_stability(wall: WallSolid, error: GeometricError) -> StrategyOutcome | None:
    """Filter sub-threshold segments and clamp coordinates into range."""
    baseline = wall.baseline
    original = len(baseline.points)
    points, removed = filter_short_segments(baseline.points, MIN_SEGMENT)
    points, clamped = clamp_coordinates(points, MAX_COORDINATE)

    polygons: list[Polygon2D] = []
    polygon_clamps = 0
    for polygon in wall.solid_geometry:
        vertices, count = clamp_coordinates(polygon.vertices, MAX_COORDINATE)
        polygon_clamps += count
        polygons.append(polygon.with_vertices(vertices) if count else polygon)

    if not (removed or clamped or polygon_clamps):
        return None

    changes: dict[str, Any] = {}
    if removed or clamped:
        changes["baseline"] = baseline.with_points(points)
    if polygon_clamps:
        changes["solid_geometry"] = polygons
    impact = _ratio(removed, original) * 0.1 + _ratio(clamped, original) * 0.05
    return StrategyOutcome(
        recovered_data=wall.healed(
            "numerical_stability_recovery",
            {"removed_segments": removed, "clamped_points": clamped + polygon_clamps},
            **changes,
        ),
        quality_impact=impact,
    )


def repair_topology(wall: WallSolid, error: GeometricError) -> StrategyOutcome | None:
    """Replace degenerate polygons, drop duplicate vertices, enforce clockwise."""
    impact = 0.0
    applied: list[str] = []
    polygons: list[Polygon2D] = []

    for polygon in wall.solid_geometry:
        original = len(polygon.vertices)
        vertices = remove_consecutive_duplicates(polygon.vertices, DUPLICATE_TOLERANCE, closed=True)
        if len(vertices) < 3:
            polygons.append(polygon.with_vertices(points_from_coords(MINIMAL_POLYGON, "recovery")))
            impact += 0.5
            applied.append("minimal_polygon")
            continue
        if len(vertices) != original:
            impact += _ratio(original - len(vertices), original) * 0.1
            applied.append("duplicate_removal")
        fixed = polygon.with_vertices(vertices)
        if not fixed.is_clockwise:
            fixed = fixed.with_vertices(list(reversed(vertices)))
            impact += 0.05
            applied.append("orientation_reversal")
        polygons.append(fixed)

    if not applied:
        return None
    return StrategyOutcome(
        recovered_data=wall.healed("topology_repair", {"applied": applied}, solid_geometry=polygons),
        quality_impact=impact,
    )


def remove_duplicate_vertices(wall: WallSolid, error: GeometricError) -> StrategyOutcome | None:
    baseline = wall.baseline
    total = len(baseline.points)
    points = remove_consecutive_duplicates(baseline.points, DUPLICATE_TOLERANCE, closed=baseline.closed)
    removed = len(baseline.points) - len(points)

    polygons: list[Polygon2D] = []
    for polygon in wall.solid_geometry:
        total += len(polygon.vertices)
        vertices = remove_consecutive_duplicates(polygon.vertices, DUPLICATE_TOLERANCE, closed=True)
        removed += len(polygon.vertices) - len(vertices)
        polygons.append(polygon.with_vertices(vertices))

    if removed == 0:
        return None
    return StrategyOutcome(
        recovered_data=wall.healed(
            "duplicate_vertex_removal",
            {"removed_vertices": removed},
            baseline=baseline.with_points(points),
            solid_geometry=polygons,
        ),
        quality_impact=_ratio(removed, total) * 0.1,
    )


def simplify_geometry(wall: WallSolid, error: GeometricError) -> StrategyOutcome | None:
    """Douglas-Peucker with a tolerance of 1% of the wall thickness."""
    thickness = wall.thickness if wall.thickness > 0 else DEFAULT_THICKNESS
    tolerance = thickness * SIMPLIFICATION_RATIO
    baseline = wall.baseline
    total = len(baseline.points)
    points = douglas_peucker(baseline.points, tolerance)
    removed = len(baseline.points) - len(points)

    polygons: list[Polygon2D] = []
    for polygon in wall.solid_geometry:
        total += len(polygon.vertices)
        vertices = douglas_peucker(polygon.vertices, tolerance)
        if len(vertices) < 3:
            vertices = polygon.vertices
        removed += len(polygon.vertices) - len(vertices)
        polygons.append(polygon.with_vertices(vertices))

    if removed == 0:
        return None
    return StrategyOutcome(
        recovered_data=wall.healed(
            "geometric_simplification",
            {"tolerance": tolerance, "removed_vertices": removed},
            baseline=baseline.with_points(points),
            solid_geometry=polygons,
        ),
        quality_impact=_ratio(removed, total) * 0.3,
        warnings=[f"Simplified with tolerance {tolerance:.3g}"],
    )


def reconstruct_wall(wall: WallSolid, error: GeometricError) -> StrategyOutcome | None:
    """Rebuild offsets and solid from a cleaned baseline."""
    baseline = wall.baseline
    points = remove_consecutive_duplicates(baseline.points, DUPLICATE_TOLERANCE, closed=baseline.closed)
    points, _ = remove_self_intersections(points, baseline.closed)
    if len(points) < 2:
        points = points_from_coords(MINIMAL_BASELINE, "reconstruction")
    baseline = baseline.with_points(points)
    thickness = wall.thickness if wall.thickness > 0 else DEFAULT_THICKNESS
    join = JoinType.BEVEL

    half = thickness / 2.0
    left = shapes.offset_curve(baseline, half, join)
    right = shapes.offset_curve(baseline, -half, join)
    solid = shapes.wall_outline(baseline, thickness, join)
    quality = wall.quality.model_copy(
        update={
            "geometric_accuracy": min(wall.quality.geometric_accuracy, 0.4),
            "manufacturability": min(wall.quality.manufacturability, 0.5),
            "self_intersection_count": 0,
            "degenerate_element_count": 0,
        }
    )
    return StrategyOutcome(
        recovered_data=wall.healed(
            "fallback_reconstruction",
            {"trigger": error.kind.value, "join_type": join.value},
            baseline=baseline,
            thickness=thickness,
            left_offset=left,
            right_offset=right,
            solid_geometry=solid,
            quality=quality,
        ),
        quality_impact=0.6,
        warnings=["Wall rebuilt from its baseline; original solid discarded"],
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

DEFAULT_STRATEGIES: tuple[RecoveryStrategy, ...] = (
    RecoveryStrategy(
        name="degenerate_geometry_recovery",
        description="Replace degenerate baseline, thickness or solid with minimal valid geometry",
        applicable_kinds=frozenset({ErrorKind.DEGENERATE_GEOMETRY, ErrorKind.INVALID_PARAMETER}),
        priority=1,
        estimated_impact=0.3,
        apply=recover_degenerate_geometry,
    ),
    RecoveryStrategy(
        name="self_intersection_resolution",
        description="Remove baseline points that cause self-intersections",
        applicable_kinds=frozenset({ErrorKind.SELF_INTERSECTION}),
        priority=2,
        estimated_impact=0.2,
        apply=resolve_self_intersections,
    ),
    RecoveryStrategy(
        name="numerical_stability_recovery",
        description="Filter sub-threshold segments and clamp out-of-range coordinates",
        applicable_kinds=frozenset(
            {ErrorKind.NUMERICAL_INSTABILITY, ErrorKind.TOLERANCE_EXCEEDED}
        ),
        priority=3,
        estimated_impact=0.1,
        apply=recover_numerical_stability,
    ),
    RecoveryStrategy(
        name="topology_repair",
        description="Fix polygon vertex counts, duplicates and orientation",
        applicable_kinds=frozenset(
            {ErrorKind.TOPOLOGY_ERROR, ErrorKind.TOPOLOGICAL_CONSISTENCY}
        ),
        priority=4,
        estimated_impact=0.15,
        apply=repair_topology,
    ),
    RecoveryStrategy(
        name="duplicate_vertex_removal",
        description="Remove duplicate vertices from baseline and polygons",
        applicable_kinds=frozenset({ErrorKind.DUPLICATE_VERTICES}),
        priority=5,
        estimated_impact=0.05,
        apply=remove_duplicate_vertices,
    ),
    RecoveryStrategy(
        name="geometric_simplification",
        description="Douglas-Peucker simplification at 1% of wall thickness",
        applicable_kinds=frozenset(
            {
                ErrorKind.COMPLEXITY_EXCEEDED,
                ErrorKind.SELF_INTERSECTION,
                ErrorKind.NUMERICAL_INSTABILITY,
                ErrorKind.MANUFACTURING_FEASIBILITY,
                ErrorKind.PERFORMANCE_OPTIMIZATION,
            }
        ),
        priority=6,
        estimated_impact=0.25,
        apply=simplify_geometry,
        requires_user_input=True,
    ),
    RecoveryStrategy(
        name="fallback_reconstruction",
        description="Rebuild offsets and solid from the baseline",
        applicable_kinds=frozenset(
            {
                ErrorKind.OFFSET_FAILURE,
                ErrorKind.BOOLEAN_FAILURE,
                ErrorKind.VALIDATION_FAILURE,
                ErrorKind.DIMENSIONAL_ACCURACY,
                ErrorKind.STRUCTURAL_INTEGRITY,
            }
        ),
        priority=10,
        estimated_impact=0.6,
        apply=reconstruct_wall,
        requires_user_input=True,
    ),
)

STRATEGY_FOR_KIND: dict[ErrorKind, str] = {
    ErrorKind.OFFSET_FAILURE: "fallback_reconstruction",
    ErrorKind.BOOLEAN_FAILURE: "fallback_reconstruction",
    ErrorKind.SELF_INTERSECTION: "self_intersection_resolution",
    ErrorKind.DEGENERATE_GEOMETRY: "degenerate_geometry_recovery",
    ErrorKind.TOLERANCE_EXCEEDED: "numerical_stability_recovery",
    ErrorKind.NUMERICAL_INSTABILITY: "numerical_stability_recovery",
    ErrorKind.DUPLICATE_VERTICES: "duplicate_vertex_removal",
    ErrorKind.VALIDATION_FAILURE: "fallback_reconstruction",
    ErrorKind.COMPLEXITY_EXCEEDED: "geometric_simplification",
    ErrorKind.INVALID_PARAMETER: "degenerate_geometry_recovery",
    ErrorKind.TOPOLOGICAL_CONSISTENCY: "topology_repair",
    ErrorKind.DIMENSIONAL_ACCURACY: "fallback_reconstruction",
    ErrorKind.STRUCTURAL_INTEGRITY: "fallback_reconstruction",
    ErrorKind.MANUFACTURING_FEASIBILITY: "geometric_simplification",
    ErrorKind.PERFORMANCE_OPTIMIZATION: "geometric_simplification",
    ErrorKind.TOPOLOGY_ERROR: "topology_repair",
}

SIMPLIFICATION = "geometric_simplification"
LAST_RESORT = "fallback_reconstruction"
