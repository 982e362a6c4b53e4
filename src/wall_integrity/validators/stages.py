"""Built-in validation stages and their recovery policies.

Each stage is a ``validate`` function returning a ``ValidationStageResult``
and an optional ``recover`` function returning a ``StageRecoveryResult``.
Recovery functions never modify their input: they return a healed copy
(or the same instance when nothing applied) plus the quality impact of
what they changed.
"""

from __future__ import annotations

import functools
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from wall_integrity.config import PipelineConfig
from wall_integrity.errors import ErrorFactory, ErrorKind, GeometricError, Severity
from wall_integrity.models.geometry import points_from_coords
from wall_integrity.models.wall import WallLike
from wall_integrity.ops.polylines import (
    clamp_coordinates,
    count_consecutive_duplicates,
    filter_short_segments,
    remove_consecutive_duplicates,
)
from wall_integrity.ops.segments import find_self_intersections, remove_self_intersections

DUPLICATE_TOLERANCE = 1e-10
MIN_STABLE_SEGMENT = 1e-6
MAX_COORDINATE = 1e6
MAX_VERTICES = 1000
MAX_PROCESSING_MS = 1000.0
MAX_MEMORY_BYTES = 1024 * 1024
BYTES_PER_VERTEX = 64

CONSISTENCY_CEILING = 0.5
TOPOLOGY_CEILING = 0.5
NUMERICAL_CEILING = 0.3

MINIMAL_BASELINE = ((0.0, 0.0), (100.0, 0.0))
MINIMAL_TRIANGLE = ((0.0, 0.0), (25.0, 50.0), (50.0, 0.0))  # clockwise


@dataclass
class ValidationStageResult:
    """Outcome of one stage run."""

    passed: bool
    errors: list[GeometricError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    metrics: dict[str, float] = field(default_factory=dict)
    processing_time: float = 0.0


@dataclass
class StageRecoveryResult:
    """Outcome of a stage recovery. ``recovered_data`` is set even on failure."""

    success: bool
    recovered_data: Any
    recovery_method: str
    quality_impact: float = 0.0
    warnings: list[str] = field(default_factory=list)


@dataclass
class ValidationStage:
    """A named validation step with optional recovery."""

    name: str
    label: str
    validate: Callable[[Any], ValidationStageResult]
    recover: Optional[Callable[[Any, list[GeometricError]], StageRecoveryResult]] = None
    quality_ceiling: float = 1.0


def _timed(fn):
    @functools.wraps(fn)
    def wrapper(*args, **kwargs) -> ValidationStageResult:
        start = time.perf_counter()
        result = fn(*args, **kwargs)
        result.processing_time = (time.perf_counter() - start) * 1000
        return result

    return wrapper


def _blocking(errors: list[GeometricError]) -> bool:
    return any(e.severity.at_least(Severity.ERROR) for e in errors)


# ---------------------------------------------------------------------------
# Geometric consistency
# ---------------------------------------------------------------------------

@_timed
def validate_geometric_consistency(entity: WallLike) -> ValidationStageResult:
    """Baseline has two points, thickness is positive, baseline does not cross itself."""
    errors: list[GeometricError] = []
    baseline = entity.baseline

    if len(baseline.points) < 2:
        errors.append(
            ErrorFactory.degenerate_geometry_error(
                f"Baseline has {len(baseline.points)} points, at least 2 required",
                geometry_type="curve",
                degenerate_elements=[baseline.id],
            )
        )

    if not entity.thickness > 0:
        errors.append(
            GeometricError(
                kind=ErrorKind.INVALID_PARAMETER,
                message=f"Wall thickness must be positive, got {entity.thickness}",
                operation="geometric_consistency",
                suggested_fix="Set wall thickness to a positive value",
            )
        )

    if len(baseline.points) >= 2:
        hits = find_self_intersections(baseline.points, baseline.closed)
        if hits:
            errors.append(
                ErrorFactory.self_intersection_error(
                    f"Baseline crosses itself {len(hits)} times",
                    intersection_points=[h.point for h in hits],
                    segment_indices=sorted({i for h in hits for i in (h.first, h.second)}),
                    severity=Severity.WARNING,
                )
            )

    passed = not errors
    return ValidationStageResult(
        passed=passed,
        errors=errors,
        metrics={
            "geometric_accuracy": 1.0 if passed else 0.5,
            "topological_consistency": 1.0 if passed else 0.3,
        },
    )


def recover_geometric_consistency(
    entity: WallLike, errors: list[GeometricError], default_thickness: float = 100.0
) -> StageRecoveryResult:
    changes: dict[str, Any] = {}
    impact = 0.0
    applied: list[str] = []
    baseline = entity.baseline

    if len(baseline.points) < 2:
        baseline = baseline.with_points(points_from_coords(MINIMAL_BASELINE, "recovery"))
        impact += 0.3
        applied.append("minimal_baseline")

    if not entity.thickness > 0:
        changes["thickness"] = default_thickness
        impact += 0.1
        applied.append("default_thickness")

    points, removed = remove_self_intersections(baseline.points, baseline.closed)
    if removed:
        baseline = baseline.with_points(points)
        impact += 0.2
        applied.append("self_intersection_removal")

    if baseline is not entity.baseline:
        changes["baseline"] = baseline
    if not changes:
        return StageRecoveryResult(False, entity, "none", 0.0, ["No consistency repair applied"])

    recovered = entity.healed("geometric_consistency_recovery", {"applied": applied}, **changes)
    return StageRecoveryResult(
        success=impact < CONSISTENCY_CEILING,
        recovered_data=recovered,
        recovery_method="+".join(applied),
        quality_impact=impact,
    )


# ---------------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------------

@_timed
def validate_topology(entity: WallLike) -> ValidationStageResult:
    """Solid polygons have 3+ vertices, clockwise rings and no repeated vertices."""
    errors: list[GeometricError] = []
    warnings: list[str] = []

    for index, polygon in enumerate(entity.solid_geometry):
        if len(polygon.vertices) < 3:
            errors.append(
                ErrorFactory.degenerate_geometry_error(
                    f"Polygon {index} has {len(polygon.vertices)} vertices",
                    geometry_type="polygon",
                    degenerate_elements=[polygon.id],
                )
            )
            continue
        if not polygon.is_clockwise:
            warnings.append(f"Polygon {index} is not clockwise")
        duplicates = count_consecutive_duplicates(polygon.vertices, DUPLICATE_TOLERANCE)
        if duplicates:
            errors.append(
                GeometricError(
                    kind=ErrorKind.DUPLICATE_VERTICES,
                    severity=Severity.WARNING,
                    message=f"Polygon {index} has {duplicates} duplicate consecutive vertices",
                    operation="topology",
                    suggested_fix="Remove duplicate vertices",
                )
            )

    return ValidationStageResult(
        passed=not _blocking(errors),
        errors=errors,
        warnings=warnings,
        metrics={"topological_consistency": 0.6 if errors else 1.0},
    )


def recover_topology(entity: WallLike, errors: list[GeometricError]) -> StageRecoveryResult:
    impact = 0.0
    applied: list[str] = []
    polygons = []
    changed = False

    for polygon in entity.solid_geometry:
        vertices = remove_consecutive_duplicates(polygon.vertices, DUPLICATE_TOLERANCE, closed=True)
        if len(polygon.vertices) < 3 or len(vertices) < 3:
            polygons.append(polygon.with_vertices(points_from_coords(MINIMAL_TRIANGLE, "recovery")))
            impact += 0.4
            applied.append("minimal_triangle")
            changed = True
            continue
        if len(vertices) != len(polygon.vertices):
            impact += 0.1
            applied.append("duplicate_removal")
            changed = True
        fixed = polygon.with_vertices(vertices)
        if not fixed.is_clockwise:
            fixed = fixed.with_vertices(list(reversed(vertices)))
            impact += 0.05
            applied.append("orientation_reversal")
            changed = True
        polygons.append(fixed)

    if not changed:
        return StageRecoveryResult(False, entity, "none", 0.0, ["No topology repair applied"])

    recovered = entity.healed("topology_recovery", {"applied": applied}, solid_geometry=polygons)
    return StageRecoveryResult(
        success=impact < TOPOLOGY_CEILING,
        recovered_data=recovered,
        recovery_method="+".join(sorted(set(applied))),
        quality_impact=impact,
    )


# ---------------------------------------------------------------------------
# Numerical stability
# ---------------------------------------------------------------------------

@_timed
def validate_numerical_stability(entity: WallLike) -> ValidationStageResult:
    """Flag sub-threshold baseline segments and coordinates beyond +/-1e6."""
    errors: list[GeometricError] = []
    warnings: list[str] = []
    baseline = entity.baseline

    for i, a, b in baseline.segments():
        length = a.distance_to(b)
        if length < MIN_STABLE_SEGMENT:
            errors.append(
                ErrorFactory.numerical_instability_error(
                    f"Baseline segment {i} length {length:.2e} is below {MIN_STABLE_SEGMENT:.0e}",
                    calculation_type="segment_length",
                    input_values=[length],
                    expected_range=(MIN_STABLE_SEGMENT, MAX_COORDINATE),
                )
            )

    points = list(baseline.points)
    for polygon in entity.solid_geometry:
        points.extend(polygon.vertices)
    large = [p for p in points if abs(p.x) > MAX_COORDINATE or abs(p.y) > MAX_COORDINATE]
    if large:
        warnings.append(f"{len(large)} coordinates exceed +/-{MAX_COORDINATE:.0e}")

    return ValidationStageResult(
        passed=not _blocking(errors),
        errors=errors,
        warnings=warnings,
        metrics={"numerical_stability": 1.0 if not (errors or large) else 0.7},
    )


def recover_numerical_stability(entity: WallLike, errors: list[GeometricError]) -> StageRecoveryResult:
    impact = 0.0
    applied: list[str] = []
    changes: dict[str, Any] = {}
    baseline = entity.baseline

    points, removed = filter_short_segments(baseline.points, MIN_STABLE_SEGMENT)
    if removed:
        impact += 0.05 * removed
        applied.append(f"removed {removed} short segments")
    points, clamped = clamp_coordinates(points, MAX_COORDINATE)
    if clamped:
        applied.append(f"clamped {clamped} baseline points")
    if removed or clamped:
        changes["baseline"] = baseline.with_points(points)

    polygons = []
    polygon_clamps = 0
    for polygon in entity.solid_geometry:
        vertices, count = clamp_coordinates(polygon.vertices, MAX_COORDINATE)
        polygon_clamps += count
        polygons.append(polygon.with_vertices(vertices) if count else polygon)
    if polygon_clamps:
        changes["solid_geometry"] = polygons
        applied.append(f"clamped {polygon_clamps} polygon vertices")

    if not changes:
        return StageRecoveryResult(False, entity, "none", 0.0, ["No numerical repair applied"])

    recovered = entity.healed("numerical_stability_recovery", {"applied": applied}, **changes)
    return StageRecoveryResult(
        success=impact < NUMERICAL_CEILING,
        recovered_data=recovered,
        recovery_method="numerical_cleanup",
        quality_impact=impact,
        warnings=applied,
    )


# ---------------------------------------------------------------------------
# Quality metrics and performance
# ---------------------------------------------------------------------------

@_timed
def validate_quality_metrics(entity: WallLike) -> ValidationStageResult:
    """Check the wall's own quality snapshot against acceptance levels."""
    quality = entity.quality
    errors: list[GeometricError] = []
    warnings: list[str] = []

    if quality.geometric_accuracy < 0.8:
        warnings.append(f"Geometric accuracy {quality.geometric_accuracy:.2f} is below 0.8")
    if quality.topological_consistency < 0.9:
        warnings.append(
            f"Topological consistency {quality.topological_consistency:.2f} is below 0.9"
        )
    if quality.sliver_face_count > 0:
        warnings.append(f"{quality.sliver_face_count} sliver faces detected")
    if quality.self_intersection_count > 0:
        errors.append(
            GeometricError(
                kind=ErrorKind.SELF_INTERSECTION,
                severity=Severity.WARNING,
                message=f"{quality.self_intersection_count} self-intersections recorded",
                operation="quality_metrics",
                suggested_fix="Remove self-intersecting segments or apply geometry healing algorithms",
            )
        )

    return ValidationStageResult(
        passed=not _blocking(errors),
        errors=errors,
        warnings=warnings,
        metrics={
            "geometric_accuracy": quality.geometric_accuracy,
            "topological_consistency": quality.topological_consistency,
            "manufacturability": quality.manufacturability,
            "architectural_compliance": quality.architectural_compliance,
        },
    )


@_timed
def validate_performance(entity: WallLike) -> ValidationStageResult:
    """Advisory size and timing checks; never fails."""
    warnings: list[str] = []
    vertices = len(entity.baseline.points) + sum(
        len(p.vertices) for p in entity.solid_geometry
    )
    memory = vertices * BYTES_PER_VERTEX

    if vertices > MAX_VERTICES:
        warnings.append(f"High vertex count: {vertices}")
    if entity.processing_time > MAX_PROCESSING_MS:
        warnings.append(f"Slow processing: {entity.processing_time:.0f}ms")
    if memory > MAX_MEMORY_BYTES:
        warnings.append(f"High memory estimate: {memory} bytes")

    efficiency = entity.processing_time / MAX_PROCESSING_MS
    return ValidationStageResult(
        passed=True,
        warnings=warnings,
        metrics={
            "processing_efficiency": max(0.0, 1.0 - efficiency) if math.isfinite(efficiency) else 0.0,
            "complexity": float(vertices),
            "memory_usage": float(memory),
        },
    )


def default_stages(config: PipelineConfig | None = None) -> list[ValidationStage]:
    """The five built-in stages in execution order."""
    config = config or PipelineConfig()
    return [
        ValidationStage(
            name="geometric_consistency",
            label="Geometric Consistency",
            validate=validate_geometric_consistency,
            recover=functools.partial(
                recover_geometric_consistency, default_thickness=config.default_thickness
            ),
            quality_ceiling=CONSISTENCY_CEILING,
        ),
        ValidationStage(
            name="topology",
            label="Topology Validation",
            validate=validate_topology,
            recover=recover_topology,
            quality_ceiling=TOPOLOGY_CEILING,
        ),
        ValidationStage(
            name="numerical_stability",
            label="Numerical Stability",
            validate=validate_numerical_stability,
            recover=recover_numerical_stability,
            quality_ceiling=NUMERICAL_CEILING,
        ),
        ValidationStage(
            name="quality_metrics",
            label="Quality Metrics",
            validate=validate_quality_metrics,
        ),
        ValidationStage(
            name="performance",
            label="Performance Validation",
            validate=validate_performance,
        ),
    ]
