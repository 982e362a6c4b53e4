"""Fallback orchestration for failed offset, boolean and intersection operations.

The search is shared by all three operations: take the registry's
applicable strategies in priority order and run up to
``max_fallback_attempts`` rounds. A strategy that returns a result, failed
or not, is not tried again; a failed result's error is passed to the
strategies after it. Only a strategy that crashes with an unexpected
exception is retried in the next round. The first successful result that
keeps at least ``quality_threshold`` is accepted.

Nothing here raises to the caller: every path ends in a result value
and a notification.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from wall_integrity.config import FallbackConfig
from wall_integrity.errors import GeometricError
from wall_integrity.fallback.notifications import (
    ALTERNATIVE_APPROACHES,
    NONE_SUCCESSFUL,
    FallbackNotification,
    boolean_guidance,
    intersection_guidance,
    log_notification,
    offset_guidance,
)
from wall_integrity.fallback.registry import (
    FallbackOperation,
    FallbackRegistry,
    FallbackResult,
    FallbackStrategy,
)
from wall_integrity.fallback.strategies import (
    BooleanRequest,
    IntersectionRequest,
    OffsetRequest,
    default_strategies,
    merged_junction,
)
from wall_integrity.models.geometry import Curve
from wall_integrity.models.wall import IntersectionType, JoinType, WallSolid
from wall_integrity.ops import shapes
from wall_integrity.ops.polylines import douglas_peucker

logger = logging.getLogger(__name__)

DEGRADATION_QUALITY = 0.3
DEGRADATION_SIMPLIFY_RATIO = 0.02


@dataclass
class OffsetResult:
    success: bool
    left_offset: Optional[Curve]
    right_offset: Optional[Curve]
    join_type: JoinType
    warnings: list[str] = field(default_factory=list)
    fallback_used: bool = False


@dataclass
class BooleanResult:
    success: bool
    result_solid: Optional[WallSolid]
    operation_type: str
    processing_time: float = 0.0
    warnings: list[str] = field(default_factory=list)
    requires_healing: bool = False
    requires_manual_review: bool = False
    fallback_used: bool = False


def _usage_warnings(result: FallbackResult) -> list[str]:
    return [
        f"Fallback method used: {result.method}",
        f"Quality impact: {(1 - result.quality_impact) * 100:.0f}%",
        *result.warnings,
    ]


class FallbackMechanisms:
    def __init__(
        self,
        config: FallbackConfig | None = None,
        registry: FallbackRegistry | None = None,
    ):
        self.config = config or FallbackConfig()
        self.registry = registry if registry is not None else FallbackRegistry(default_strategies())

    def add_strategy(self, strategy: FallbackStrategy) -> None:
        self.registry.add(strategy)

    def remove_strategy(self, name: str) -> bool:
        return self.registry.remove(name)

    def available_strategies(self, operation: FallbackOperation | str | None = None) -> list[str]:
        return self.registry.names(FallbackOperation(operation) if operation else None)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def execute_offset_fallback(
        self,
        baseline: Curve,
        distance: float,
        join_type: JoinType,
        tolerance: float,
        error: GeometricError,
    ) -> OffsetResult:
        request = OffsetRequest(baseline=baseline, distance=distance, join_type=join_type, tolerance=tolerance)
        result = self._search(FallbackOperation.OFFSET, request, error)
        if result is None:
            self._notify(
                FallbackNotification(
                    operation="offset",
                    original_error=error.message,
                    fallback_method=NONE_SUCCESSFUL,
                    quality_impact=0.0,
                    user_guidance=offset_guidance(None),
                    can_retry=False,
                    alternative_approaches=list(ALTERNATIVE_APPROACHES["offset"]),
                )
            )
            return OffsetResult(
                success=False,
                left_offset=None,
                right_offset=None,
                join_type=join_type,
                warnings=["All offset fallback strategies failed"],
            )

        self._notify_success("offset", error, result, offset_guidance(result.method))
        pair = result.result
        return OffsetResult(
            success=True,
            left_offset=pair.left,
            right_offset=pair.right,
            join_type=pair.join_type,
            warnings=_usage_warnings(result),
            fallback_used=True,
        )

    def execute_boolean_fallback(
        self,
        operation: str,
        solids: list[WallSolid],
        error: GeometricError,
    ) -> BooleanResult:
        start = time.perf_counter()
        request = BooleanRequest(operation=operation, solids=list(solids))
        result = self._search(FallbackOperation.BOOLEAN, request, error)
        if result is None:
            self._notify(
                FallbackNotification(
                    operation=f"boolean_{operation}",
                    original_error=error.message,
                    fallback_method=NONE_SUCCESSFUL,
                    quality_impact=0.0,
                    user_guidance=boolean_guidance(None),
                    can_retry=False,
                    alternative_approaches=list(ALTERNATIVE_APPROACHES["boolean"]),
                )
            )
            return BooleanResult(
                success=False,
                result_solid=None,
                operation_type=f"{operation}_fallback_failed",
                processing_time=(time.perf_counter() - start) * 1000,
                warnings=["All boolean fallback strategies failed"],
            )

        self._notify_success(f"boolean_{operation}", error, result, boolean_guidance(result.method))
        return BooleanResult(
            success=True,
            result_solid=result.result,
            operation_type=f"{operation}_fallback",
            processing_time=(time.perf_counter() - start) * 1000,
            warnings=_usage_warnings(result),
            requires_healing=result.quality_impact < 0.8,
            fallback_used=True,
        )

    def execute_intersection_fallback(
        self,
        walls: list[WallSolid],
        intersection_type: IntersectionType,
        error: GeometricError,
    ) -> BooleanResult:
        """Resolve a junction; falls through to graceful degradation."""
        start = time.perf_counter()
        intersection_type = IntersectionType(intersection_type)
        request = IntersectionRequest(walls=list(walls), intersection_type=intersection_type)
        result = self._search(FallbackOperation.INTERSECTION, request, error)
        if result is None:
            return self._graceful_degradation(list(walls), intersection_type, error, start)

        self._notify_success(
            f"intersection_{intersection_type.value}",
            error,
            result,
            intersection_guidance(result.method, intersection_type),
        )
        return BooleanResult(
            success=True,
            result_solid=result.result,
            operation_type=f"{intersection_type.value}_fallback",
            processing_time=(time.perf_counter() - start) * 1000,
            warnings=_usage_warnings(result),
            requires_healing=result.quality_impact < 0.8,
            fallback_used=True,
        )

    # ------------------------------------------------------------------
    # Search and degradation
    # ------------------------------------------------------------------

    def _search(
        self, operation: FallbackOperation, request: Any, error: GeometricError
    ) -> FallbackResult | None:
        candidates = self.registry.applicable(operation, error)
        attempted: set[str] = set()
        current_error = error

        for round_number in range(self.config.max_fallback_attempts):
            pending = [s for s in candidates if s.name not in attempted]
            if not pending:
                break
            for strategy in pending:
                try:
                    result = strategy.execute(operation, request, current_error)
                except Exception as exc:
                    logger.warning("%s raised", strategy.name, exc_info=True)
                    current_error = current_error.model_copy(
                        update={"message": f"{strategy.name}: {type(exc).__name__}: {exc}"}
                    )
                    continue

                attempted.add(strategy.name)
                if not result.success:
                    logger.debug("%s failed: %s", strategy.name, "; ".join(result.warnings))
                    if result.error is not None:
                        current_error = result.error
                    continue
                if result.quality_impact >= self.config.quality_threshold:
                    logger.info(
                        "%s fallback accepted %s (quality %.2f, round %d)",
                        operation.value, strategy.name, result.quality_impact, round_number + 1,
                    )
                    return result
                logger.debug(
                    "%s rejected: quality %.2f below %.2f",
                    strategy.name, result.quality_impact, self.config.quality_threshold,
                )
        return None

    def _graceful_degradation(
        self,
        walls: list[WallSolid],
        intersection_type: IntersectionType,
        error: GeometricError,
        start: float,
    ) -> BooleanResult:
        """Simplify every wall and union the outlines; the last resort for junctions."""
        operation = f"intersection_{intersection_type.value}"
        try:
            polygons = []
            for wall in walls:
                tolerance = max(wall.thickness, 0.0) * DEGRADATION_SIMPLIFY_RATIO
                baseline = wall.baseline.with_points(douglas_peucker(wall.baseline.points, tolerance))
                polygons.extend(shapes.wall_outline(baseline, wall.thickness, JoinType.BEVEL))
            merged = shapes.union_all(polygons)
            solid = merged_junction(
                walls, merged, intersection_type, "graceful_degradation", DEGRADATION_QUALITY
            )
        except Exception as exc:
            logger.warning("Graceful degradation failed for %s", operation, exc_info=True)
            self._notify(
                FallbackNotification(
                    operation=operation,
                    original_error=error.message,
                    fallback_method=NONE_SUCCESSFUL,
                    quality_impact=0.0,
                    user_guidance=intersection_guidance(None, intersection_type),
                    can_retry=False,
                    alternative_approaches=list(ALTERNATIVE_APPROACHES["intersection"]),
                )
            )
            return BooleanResult(
                success=False,
                result_solid=None,
                operation_type=f"failed_degradation_{intersection_type.value}",
                processing_time=(time.perf_counter() - start) * 1000,
                warnings=[f"Graceful degradation failed: {type(exc).__name__}: {exc}"],
                requires_healing=False,
            )

        self._notify(
            FallbackNotification(
                operation=operation,
                original_error=error.message,
                fallback_method="graceful_degradation",
                quality_impact=DEGRADATION_QUALITY,
                user_guidance=intersection_guidance("graceful_degradation", intersection_type),
                can_retry=False,
                alternative_approaches=list(ALTERNATIVE_APPROACHES["intersection"]),
            )
        )
        return BooleanResult(
            success=True,
            result_solid=solid,
            operation_type=f"graceful_degradation_{intersection_type.value}",
            processing_time=(time.perf_counter() - start) * 1000,
            warnings=[
                "Graceful degradation applied",
                "Intersection precision reduced",
                "Manual review recommended",
            ],
            requires_healing=True,
            requires_manual_review=True,
            fallback_used=True,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify_success(
        self, operation: str, error: GeometricError, result: FallbackResult, guidance: list[str]
    ) -> None:
        key = operation.split("_", 1)[0]
        self._notify(
            FallbackNotification(
                operation=operation,
                original_error=error.message,
                fallback_method=result.method,
                quality_impact=result.quality_impact,
                user_guidance=guidance + [f"Limitation: {text}" for text in result.limitations],
                can_retry=True,
                alternative_approaches=list(ALTERNATIVE_APPROACHES[key]),
            )
        )

    def _notify(self, notification: FallbackNotification) -> None:
        callback: Callable[[FallbackNotification], None] = (
            self.config.notification_callback or log_notification
        )
        try:
            callback(notification)
        except Exception:
            logger.warning("Fallback notification callback raised", exc_info=True)
