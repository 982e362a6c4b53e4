"""Edge-case detection on raw curves and wall solids.

Scans geometry for defects that break downstream offset and boolean
operations: zero-length and micro segments, degenerate curves,
self-intersections, extreme turning angles and coincident points.

All checks are pure. Non-finite coordinates never raise; every
comparison involving NaN is false, so such input simply produces no
finding for that check.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from wall_integrity.config import EdgeCaseConfig
from wall_integrity.errors import Severity
from wall_integrity.models.geometry import Curve
from wall_integrity.models.wall import WallSolid
from wall_integrity.ops.polylines import turning_angle
from wall_integrity.ops.segments import coincident_pairs, find_self_intersections, segment_lengths

logger = logging.getLogger(__name__)


class EdgeCaseType(str, Enum):
    ZERO_LENGTH_SEGMENT = "zero_length_segment"
    DEGENERATE_GEOMETRY = "degenerate_geometry"
    SELF_INTERSECTION = "self_intersection"
    EXTREME_ANGLE = "extreme_angle"
    COINCIDENT_POINTS = "coincident_points"
    MICRO_SEGMENT = "micro_segment"
    NUMERICAL_INSTABILITY = "numerical_instability"


@dataclass
class EdgeCaseResult:
    """One detector finding."""

    edge_case_type: EdgeCaseType
    severity: Severity
    description: str
    affected_elements: list[str] = field(default_factory=list)
    suggested_fix: str = ""
    can_auto_fix: bool = False
    tolerance: float = 0.0
    has_edge_case: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.edge_case_type.value,
            "severity": self.severity.value,
            "description": self.description,
            "affected_elements": list(self.affected_elements),
            "suggested_fix": self.suggested_fix,
            "can_auto_fix": self.can_auto_fix,
        }


def _curve_segment_lengths(curve: Curve) -> np.ndarray:
    """Lengths indexed like ``Curve.segments``, closing segment included."""
    segments = list(curve.segments())
    if not segments:
        return np.zeros(0)
    chain = [a for _, a, _ in segments] + [segments[-1][2]]
    return segment_lengths(chain)


class EdgeCaseDetector:
    """Detects geometric edge cases using configurable thresholds."""

    def __init__(self, config: EdgeCaseConfig | None = None):
        self._config = config or EdgeCaseConfig()

    @property
    def config(self) -> EdgeCaseConfig:
        return self._config.model_copy()

    def update_config(self, **changes: Any) -> None:
        """Replace thresholds; the merged config is re-validated."""
        self._config = EdgeCaseConfig.model_validate({**self._config.model_dump(), **changes})

    # ------------------------------------------------------------------
    # Curves
    # ------------------------------------------------------------------

    def detect_curve_edge_cases(self, curve: Curve) -> list[EdgeCaseResult]:
        """Run every curve check; only positive findings are returned."""
        checks = (
            self._zero_length_segments,
            self._degenerate_geometry,
            self._self_intersections,
            self._extreme_angles,
            self._coincident_points,
            self._micro_segments,
        )
        results = [r for r in (check(curve) for check in checks) if r is not None]
        if results:
            logger.debug(
                "Curve %s: %s",
                curve.id,
                ", ".join(r.edge_case_type.value for r in results),
            )
        return results

    def _zero_length_segments(self, curve: Curve) -> EdgeCaseResult | None:
        tol = self._config.min_segment_length
        lengths = _curve_segment_lengths(curve)
        with np.errstate(invalid="ignore"):
            short = lengths < tol
        affected = [f"segment_{i}" for i in np.flatnonzero(short)]
        if not affected:
            return None
        return EdgeCaseResult(
            edge_case_type=EdgeCaseType.ZERO_LENGTH_SEGMENT,
            severity=Severity.WARNING,
            description=f"Found {len(affected)} zero-length segments",
            affected_elements=affected,
            suggested_fix="Remove zero-length segments or merge coincident points",
            can_auto_fix=True,
            tolerance=tol,
        )

    def _degenerate_geometry(self, curve: Curve) -> EdgeCaseResult | None:
        points = curve.points
        tol = self._config.coincident_point_tolerance
        if len(points) < 2:
            description = "Curve has less than 2 points"
        elif all(
            abs(p.x - points[0].x) < tol and abs(p.y - points[0].y) < tol for p in points
        ):
            description = "All points in curve are identical"
        elif curve.length < self._config.min_segment_length:
            description = (
                f"Curve length {curve.length:.2e} is below minimum threshold"
            )
        else:
            return None
        return EdgeCaseResult(
            edge_case_type=EdgeCaseType.DEGENERATE_GEOMETRY,
            severity=Severity.ERROR,
            description=description,
            affected_elements=[curve.id],
            suggested_fix="Reconstruct curve with valid geometry",
            can_auto_fix=False,
            tolerance=self._config.min_segment_length,
        )

    def _self_intersections(self, curve: Curve) -> EdgeCaseResult | None:
        hits = find_self_intersections(
            curve.points, curve.closed, self._config.numerical_precision
        )
        if not hits:
            return None
        return EdgeCaseResult(
            edge_case_type=EdgeCaseType.SELF_INTERSECTION,
            severity=Severity.ERROR,
            description=f"Found {len(hits)} self-intersections",
            affected_elements=[f"intersection_{h.first}_{h.second}" for h in hits],
            suggested_fix="Resolve self-intersections by modifying curve geometry",
            can_auto_fix=False,
            tolerance=self._config.self_intersection_tolerance,
        )

    def _extreme_angles(self, curve: Curve) -> EdgeCaseResult | None:
        cfg = self._config
        points = curve.points
        extreme: list[tuple[int, float]] = []
        for i in range(1, len(points) - 1):
            angle = turning_angle(points[i - 1], points[i], points[i + 1], cfg.numerical_precision)
            if angle is None:
                continue
            if angle < cfg.min_angle_tolerance or angle > cfg.max_angle_tolerance:
                extreme.append((i, angle))
        if not extreme:
            return None

        # Escalate when an angle sits deep inside either forbidden band
        reversal_band = math.pi - cfg.max_angle_tolerance
        severe = any(
            a < cfg.min_angle_tolerance * 0.1 or (math.pi - a) < reversal_band * 0.1
            for _, a in extreme
        )
        return EdgeCaseResult(
            edge_case_type=EdgeCaseType.EXTREME_ANGLE,
            severity=Severity.ERROR if severe else Severity.WARNING,
            description=f"Found {len(extreme)} extreme angles",
            affected_elements=[f"angle_{i}" for i, _ in extreme],
            suggested_fix="Smooth sharp angles or remove nearly collinear points",
            can_auto_fix=True,
            tolerance=cfg.min_angle_tolerance,
        )

    def _coincident_points(self, curve: Curve) -> EdgeCaseResult | None:
        tol = self._config.coincident_point_tolerance
        pairs = coincident_pairs(curve.points, tol)
        if not pairs:
            return None
        return EdgeCaseResult(
            edge_case_type=EdgeCaseType.COINCIDENT_POINTS,
            severity=Severity.WARNING,
            description=f"Found {len(pairs)} coincident point pairs",
            affected_elements=[f"points_{i}_{j}" for i, j in pairs],
            suggested_fix="Merge coincident points or increase point separation",
            can_auto_fix=True,
            tolerance=tol,
        )

    def _micro_segments(self, curve: Curve) -> EdgeCaseResult | None:
        low = self._config.min_segment_length
        high = self._config.micro_segment_length
        lengths = _curve_segment_lengths(curve)
        with np.errstate(invalid="ignore"):
            micro = (lengths > low) & (lengths < high)
        affected = [f"segment_{i}" for i in np.flatnonzero(micro)]
        if not affected:
            return None
        return EdgeCaseResult(
            edge_case_type=EdgeCaseType.MICRO_SEGMENT,
            severity=Severity.WARNING,
            description=f"Found {len(affected)} micro segments",
            affected_elements=affected,
            suggested_fix="Consider merging micro segments or increasing segment length",
            can_auto_fix=True,
            tolerance=high,
        )

    # ------------------------------------------------------------------
    # Wall solids
    # ------------------------------------------------------------------

    def detect_wall_solid_edge_cases(self, wall: WallSolid) -> list[EdgeCaseResult]:
        """Baseline and offset findings plus wall-level thickness checks."""
        results = self.detect_curve_edge_cases(wall.baseline)

        for label, offset in (("Left", wall.left_offset), ("Right", wall.right_offset)):
            if offset is None:
                continue
            for result in self.detect_curve_edge_cases(offset):
                result.description = f"{label} offset: {result.description}"
                results.append(result)

        if wall.thickness < self._config.numerical_precision:
            results.append(
                EdgeCaseResult(
                    edge_case_type=EdgeCaseType.NUMERICAL_INSTABILITY,
                    severity=Severity.ERROR,
                    description=(
                        f"Wall thickness {wall.thickness} is below numerical precision"
                    ),
                    affected_elements=[wall.id],
                    suggested_fix="Increase wall thickness to a positive value",
                    can_auto_fix=False,
                    tolerance=self._config.numerical_precision,
                )
            )
        return results
