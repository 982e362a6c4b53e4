"""Iterative auto-fixing of detected edge cases.

The handler runs the detector, applies a fix for every auto-fixable
finding, and repeats until nothing fixable remains, nothing changes, or
the iteration limit is reached. Inputs are never modified; results carry
new curves/walls.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from wall_integrity.config import EdgeCaseHandlingConfig
from wall_integrity.models.geometry import Curve, Point2D
from wall_integrity.models.wall import WallSolid
from wall_integrity.ops.polylines import (
    filter_short_segments,
    merge_coincident_points,
    turning_angle,
)
from wall_integrity.validators.edge_cases import EdgeCaseDetector, EdgeCaseResult, EdgeCaseType

logger = logging.getLogger(__name__)


@dataclass
class EdgeCaseHandlingResult:
    """Outcome of a handling run."""

    original_issue_count: int
    resolved_issue_count: int
    remaining_issues: list[EdgeCaseResult] = field(default_factory=list)
    applied_fixes: list[str] = field(default_factory=list)
    modified_elements: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    processing_time: float = 0.0
    curve: Optional[Curve] = None
    wall: Optional[WallSolid] = None

    @property
    def fully_resolved(self) -> bool:
        return not self.remaining_issues


class EdgeCaseHandler:
    def __init__(
        self,
        detector: EdgeCaseDetector | None = None,
        config: EdgeCaseHandlingConfig | None = None,
    ):
        self.detector = detector or EdgeCaseDetector()
        self.config = config or EdgeCaseHandlingConfig()

    def handle_curve_edge_cases(self, curve: Curve) -> EdgeCaseHandlingResult:
        start = time.perf_counter()
        fixed, issues, original, fixes, warnings = self._heal_curve(curve)
        return EdgeCaseHandlingResult(
            original_issue_count=original,
            resolved_issue_count=max(0, original - len(issues)),
            remaining_issues=issues,
            applied_fixes=fixes,
            modified_elements=[curve.id] if fixes else [],
            warnings=warnings,
            processing_time=(time.perf_counter() - start) * 1000,
            curve=fixed,
        )

    def handle_wall_solid_edge_cases(self, wall: WallSolid) -> EdgeCaseHandlingResult:
        """Heal baseline and offsets; raise sub-precision thickness to the minimum."""
        start = time.perf_counter()
        original = len(self.detector.detect_wall_solid_edge_cases(wall))
        changes: dict = {}
        fixes: list[str] = []
        warnings: list[str] = []
        modified: list[str] = []

        for name in ("baseline", "left_offset", "right_offset"):
            curve = getattr(wall, name)
            if curve is None:
                continue
            fixed, _, _, curve_fixes, curve_warnings = self._heal_curve(curve)
            if curve_fixes:
                changes[name] = fixed
                fixes.extend(f"{name}: {fix}" for fix in curve_fixes)
                modified.append(curve.id)
            warnings.extend(f"{name}: {w}" for w in curve_warnings)

        if self.config.auto_fix_enabled and wall.thickness < self.detector.config.numerical_precision:
            changes["thickness"] = self.config.min_wall_thickness
            fixes.append(f"thickness: set to {self.config.min_wall_thickness}")
            modified.append(wall.id)

        healed = wall
        if changes:
            healed = wall.healed("edge_case_handling", {"fixes": list(fixes)}, **changes)
        remaining = self.detector.detect_wall_solid_edge_cases(healed)
        return EdgeCaseHandlingResult(
            original_issue_count=original,
            resolved_issue_count=max(0, original - len(remaining)),
            remaining_issues=remaining,
            applied_fixes=fixes,
            modified_elements=modified,
            warnings=warnings,
            processing_time=(time.perf_counter() - start) * 1000,
            wall=healed,
        )

    # ------------------------------------------------------------------

    def _heal_curve(self, curve: Curve):
        issues = self.detector.detect_curve_edge_cases(curve)
        original = len(issues)
        fixes: list[str] = []
        warnings: list[str] = []
        if not self.config.auto_fix_enabled:
            return curve, issues, original, fixes, warnings

        for iteration in range(self.config.max_iterations):
            fixable = [r for r in issues if r.can_auto_fix]
            if not fixable:
                break
            points = list(curve.points)
            applied_now: list[str] = []
            for issue in fixable:
                points, label = self._apply_fix(issue.edge_case_type, points, curve.closed)
                if label:
                    applied_now.append(label)
            if not applied_now:
                break
            curve = curve.with_points(points)
            fixes.extend(applied_now)
            issues = self.detector.detect_curve_edge_cases(curve)
            logger.debug(
                "Edge-case iteration %d on %s: %s, %d issues left",
                iteration + 1, curve.id, applied_now, len(issues),
            )

        unfixed = [r for r in issues if r.can_auto_fix]
        if unfixed:
            warnings.append(
                f"{len(unfixed)} auto-fixable issues remain after "
                f"{self.config.max_iterations} iterations"
            )
        return curve, issues, original, fixes, warnings

    def _apply_fix(
        self, kind: EdgeCaseType, points: list[Point2D], closed: bool
    ) -> tuple[list[Point2D], str | None]:
        floor = 3 if closed else 2
        detector_cfg = self.detector.config

        if kind == EdgeCaseType.ZERO_LENGTH_SEGMENT:
            new, removed = filter_short_segments(points, detector_cfg.min_segment_length)
            if closed and len(new) > floor and new[-1].distance_to(new[0]) < detector_cfg.min_segment_length:
                new = new[:-1]
                removed += 1
            label = f"removed {removed} zero-length segments"
        elif kind == EdgeCaseType.COINCIDENT_POINTS:
            new, removed = merge_coincident_points(points, detector_cfg.coincident_point_tolerance)
            if closed and len(new) > floor and new[-1].distance_to(new[0]) < detector_cfg.coincident_point_tolerance:
                new = new[:-1]
                removed += 1
            label = f"merged {removed} coincident points"
        elif kind == EdgeCaseType.MICRO_SEGMENT:
            threshold = detector_cfg.micro_segment_length
            if self.config.aggressive_healing:
                threshold = max(threshold, self.config.min_segment_length_after_fix)
            new, removed = filter_short_segments(points, threshold)
            label = f"merged {removed} micro segments"
        elif kind == EdgeCaseType.EXTREME_ANGLE:
            new, removed, moved = self._smooth_extreme_vertices(points, detector_cfg)
            parts = []
            if removed:
                parts.append(f"removed {removed} extreme-angle vertices")
            if moved:
                parts.append(f"moved {moved} spike vertices to neighbour midpoints")
            label = "; ".join(parts)
            removed += moved
        else:
            return points, None

        if removed == 0 or len(new) < floor:
            return points, None
        return new, label

    def _smooth_extreme_vertices(
        self, points: list[Point2D], detector_cfg
    ) -> tuple[list[Point2D], int, int]:
        # Near-straight vertices are dropped; spikes move to the midpoint of
        # their neighbours, and only when healing aggressively
        result = [points[0]] if points else []
        removed = moved = 0
        for i in range(1, len(points) - 1):
            angle = turning_angle(result[-1], points[i], points[i + 1], detector_cfg.numerical_precision)
            if angle is None:
                result.append(points[i])
                continue
            if angle < self.config.angle_snap_tolerance:
                removed += 1
                continue
            if angle > detector_cfg.max_angle_tolerance and self.config.aggressive_healing:
                prev, nxt = result[-1], points[i + 1]
                midpoint = ((prev.x + nxt.x) / 2, (prev.y + nxt.y) / 2)
                result.append(points[i].moved_to(*midpoint, "spike_midpoint"))
                moved += 1
                continue
            result.append(points[i])
        if len(points) > 1:
            result.append(points[-1])
        return result, removed, moved
