"""End-to-end integration tests.

Covers the full integrity flow:
failed operation → fallback → validation pipeline → automatic recovery → re-validation
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from wall_integrity import (
    AutomaticRecoverySystem,
    ErrorFactory,
    FallbackConfig,
    FallbackMechanisms,
    GeometryOperationError,
    PipelineConfig,
    ValidationPhase,
    ValidationPipeline,
)
from wall_integrity.fallback import NotificationLog
from wall_integrity.models import Curve, IntersectionType, JoinType, Polygon2D, WallSolid
from wall_integrity.ops import shapes


def failing_offset(baseline: Curve, distance: float, join_type: JoinType):
    """Stand-in for a primary offset engine that cannot handle the input."""
    raise GeometryOperationError(
        ErrorFactory.offset_error(
            "Miter spike exceeded limit",
            offset_distance=distance,
            join_type=join_type.value,
            curve_type=baseline.curve_type.value,
        )
    )


def make_wall(coords, thickness=200.0):
    baseline = Curve.from_coords(coords)
    return WallSolid(
        baseline=baseline,
        thickness=thickness,
        solid_geometry=shapes.wall_outline(baseline, thickness),
    )


class TestOffsetFlow:
    def test_fallback_result_validates(self):
        baseline = Curve.from_coords([(0, 0), (3000, 0), (3000, 2000)])
        with pytest.raises(GeometryOperationError) as excinfo:
            failing_offset(baseline, 100.0, JoinType.MITER)
        error = excinfo.value.error

        log = NotificationLog()
        fallback = FallbackMechanisms(FallbackConfig(notification_callback=log))
        offsets = fallback.execute_offset_fallback(baseline, 100.0, JoinType.MITER, 1e-6, error)
        assert offsets.success
        assert offsets.fallback_used

        wall = WallSolid(
            baseline=baseline,
            thickness=200.0,
            left_offset=offsets.left_offset,
            right_offset=offsets.right_offset,
            solid_geometry=shapes.wall_outline(baseline, 200.0, offsets.join_type),
        )
        result = ValidationPipeline().execute_validation(wall, "offset", ValidationPhase.POST)
        assert result.success
        assert result.errors == []
        assert len(log) == 1


class TestIntersectionFlow:
    def test_junction_fallback_validates(self):
        walls = [make_wall([(0, 0), (4000, 0)]), make_wall([(2000, -2000), (2000, 2000)])]
        error = ErrorFactory.boolean_error("Cross junction union failed", "union", 2)
        fallback = FallbackMechanisms(FallbackConfig(notification_callback=NotificationLog()))
        result = fallback.execute_intersection_fallback(walls, IntersectionType.CROSS_JUNCTION, error)
        assert result.success

        validation = ValidationPipeline().execute_validation(result.result_solid, "intersection")
        assert validation.success
        assert len(result.result_solid.intersection_data) == 1


class TestRepairFlow:
    def test_pipeline_errors_recovered(self):
        wall = WallSolid(
            baseline=Curve.from_coords([(0, 0), (10, 10), (10, 0), (0, 10)]),
            thickness=200.0,
            solid_geometry=[Polygon2D.from_coords([(0, -100), (0, 100), (1000, 100), (1000, -100)])],
        )
        inspect = ValidationPipeline(PipelineConfig(enable_auto_recovery=False))
        report = inspect.execute_validation(wall, "offset")
        assert not report.success

        session = AutomaticRecoverySystem().attempt_recovery(wall, report.errors)
        assert session.is_complete
        assert not session.requires_user_intervention
        assert session.original_data.baseline.points == wall.baseline.points

        after = inspect.execute_validation(session.current_data, "offset")
        assert after.success
        assert after.errors == []


class TestBatch:
    @pytest.mark.parametrize("workers", [1, 4])
    def test_concurrent_validation(self, workers):
        walls = [make_wall([(0, 0), (1000 + i, 0)]) for i in range(8)]
        walls = [w.model_copy(update={"thickness": 0.0}) if i % 2 else w for i, w in enumerate(walls)]
        pipeline = ValidationPipeline()
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda w: pipeline.execute_validation(w, "batch"), walls))
        assert all(r.success for r in results)
        assert [r.data.thickness for r in results] == [200.0 if i % 2 == 0 else 100.0 for i in range(8)]
        assert all(w.thickness in (0.0, 200.0) for w in walls)
