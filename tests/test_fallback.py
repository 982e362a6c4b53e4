"""Tests for fallback strategies, the registry and the fallback search."""

import logging

import pytest

from wall_integrity.config import FallbackConfig
from wall_integrity.errors import ErrorFactory, ErrorKind, GeometricError, GeometryOperationError
from wall_integrity.fallback import (
    FallbackMechanisms,
    FallbackNotification,
    FallbackOperation,
    FallbackRegistry,
    FallbackStrategy,
    NotificationLog,
    default_strategies,
)
from wall_integrity.fallback.strategies import (
    BasicPolygonOffset,
    BooleanRequest,
    OffsetPair,
    OffsetRequest,
    SimplifiedBoolean,
)
from wall_integrity.models import Curve, IntersectionType, JoinType, Polygon2D, WallSolid

L_SHAPE = [(0, 0), (1000, 0), (1000, 1000)]


def horizontal_wall():
    return WallSolid(
        baseline=Curve.from_coords([(0, 0), (1000, 0)]),
        thickness=200,
        solid_geometry=[Polygon2D.from_coords([(0, -100), (0, 100), (1000, 100), (1000, -100)])],
    )


def vertical_wall():
    return WallSolid(
        baseline=Curve.from_coords([(500, -500), (500, 500)]),
        thickness=200,
        solid_geometry=[Polygon2D.from_coords([(400, -500), (400, 500), (600, 500), (600, -500)])],
    )


def offset_error():
    return ErrorFactory.offset_error("offset failed", 100, "miter", "polyline")


def boolean_error():
    return ErrorFactory.boolean_error("union failed", "union", 2)


class Recording(FallbackStrategy):
    """Offset strategy that records its calls."""

    operation = FallbackOperation.OFFSET

    def __init__(self, name, priority, quality, calls, fail=None, crash=None):
        self.name = name
        self.priority = priority
        self.quality_impact = quality
        self.calls = calls
        self.fail = fail
        self.crash = crash

    def run(self, request, error):
        self.calls.append((self.name, error.message))
        if self.crash is not None:
            raise self.crash
        if self.fail is not None:
            return self.failed(self.fail)
        pair = OffsetPair(left=request.baseline, right=request.baseline, join_type=request.join_type)
        return self.succeeded(pair)


def mechanisms(*strategies, **config):
    log = NotificationLog()
    mech = FallbackMechanisms(
        FallbackConfig(notification_callback=log, **config),
        registry=FallbackRegistry(strategies),
    )
    return mech, log


def run_offset(mech, error=None):
    return mech.execute_offset_fallback(
        Curve.from_coords(L_SHAPE), 100.0, JoinType.MITER, 1e-6, error or offset_error()
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestRegistry:
    def test_default_strategies_per_operation(self):
        registry = FallbackRegistry(default_strategies())
        assert registry.names(FallbackOperation.OFFSET) == [
            "simplified_geometry_offset",
            "reduced_precision_offset",
            "segmented_offset",
            "basic_polygon_offset",
        ]
        assert registry.names(FallbackOperation.BOOLEAN) == [
            "simplified_boolean",
            "alternative_algorithm_boolean",
            "approximate_boolean",
            "basic_union",
        ]
        assert registry.names(FallbackOperation.INTERSECTION) == [
            "approximate_intersection",
            "simplified_intersection",
            "basic_overlap",
        ]

    def test_sorted_by_priority(self):
        calls = []
        registry = FallbackRegistry([Recording("low", 1, 0.9, calls), Recording("high", 100, 0.9, calls)])
        assert registry.names() == ["high", "low"]
        registry.add(Recording("middle", 50, 0.9, calls))
        assert registry.names() == ["high", "middle", "low"]

    def test_add_replaces_same_name(self):
        calls = []
        registry = FallbackRegistry([Recording("a", 1, 0.9, calls)])
        registry.add(Recording("a", 5, 0.9, calls))
        assert len(registry) == 1
        assert registry.snapshot()[0].priority == 5

    def test_remove(self):
        registry = FallbackRegistry(default_strategies())
        assert registry.remove("basic_union")
        assert not registry.remove("basic_union")
        assert "basic_union" not in registry.names()

    def test_snapshot_unaffected_by_later_changes(self):
        registry = FallbackRegistry(default_strategies())
        snapshot = registry.snapshot()
        registry.remove("basic_overlap")
        assert len(snapshot) == len(registry) + 1

    def test_applicable_filters_by_error(self):
        registry = FallbackRegistry(default_strategies())
        numerical = GeometricError(kind=ErrorKind.NUMERICAL_INSTABILITY, message="x")
        names = [s.name for s in registry.applicable(FallbackOperation.OFFSET, numerical)]
        assert names == [
            "simplified_geometry_offset",
            "reduced_precision_offset",
            "basic_polygon_offset",
        ]


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

class TestSearch:
    def test_higher_priority_tried_first(self):
        calls = []
        mech, _ = mechanisms(Recording("low", 1, 0.9, calls), Recording("high", 100, 0.2, calls))
        result = run_offset(mech)
        assert [name for name, _ in calls] == ["high", "low"]
        assert result.success
        assert result.warnings[0] == "Fallback method used: low"

    def test_first_acceptable_result_wins(self):
        calls = []
        mech, _ = mechanisms(Recording("low", 1, 0.9, calls), Recording("high", 100, 0.9, calls))
        run_offset(mech)
        assert [name for name, _ in calls] == ["high"]

    def test_crashing_strategy_retried_each_round(self):
        calls = []
        mech, log = mechanisms(
            Recording("flaky", 1, 0.9, calls, crash=RuntimeError("boom")), max_fallback_attempts=3
        )
        result = run_offset(mech)
        assert len(calls) == 3
        assert not result.success
        assert result.left_offset is None
        assert log.entries[-1].fallback_method == "none_successful"
        assert log.entries[-1].can_retry is False

    def test_failed_error_passed_to_next_strategy(self):
        calls = []
        failure = GeometricError(kind=ErrorKind.NUMERICAL_INSTABILITY, message="first broke")
        mech, _ = mechanisms(
            Recording("first", 10, 0.9, calls, fail=failure),
            Recording("second", 5, 0.9, calls),
        )
        assert run_offset(mech).success
        assert calls == [("first", "offset failed"), ("second", "first broke")]

    def test_failed_result_not_retried(self):
        calls = []
        failure = GeometricError(kind=ErrorKind.OFFSET_FAILURE, message="cannot offset")
        mech, log = mechanisms(Recording("broken", 1, 0.9, calls, fail=failure), max_fallback_attempts=3)
        result = run_offset(mech)
        assert not result.success
        assert calls == [("broken", "offset failed")]
        assert log.entries[-1].fallback_method == "none_successful"

    def test_geometry_layer_error_becomes_failed_result(self):
        calls = []
        raised = GeometryOperationError(
            GeometricError(kind=ErrorKind.BOOLEAN_FAILURE, message="shapely gave up")
        )
        strategy = Recording("shaky", 1, 0.9, calls, crash=raised)
        mech, _ = mechanisms(strategy, max_fallback_attempts=3)
        assert not run_offset(mech).success
        assert len(calls) == 1

        result = strategy.execute(FallbackOperation.OFFSET, None, offset_error())
        assert not result.success
        assert result.result is None
        assert result.error.message == "shapely gave up"

    def test_rejected_results_not_retried(self):
        calls = []
        mech, _ = mechanisms(Recording("weak", 1, 0.1, calls), max_fallback_attempts=5)
        assert not run_offset(mech).success
        assert len(calls) == 1

    def test_notification_callback_errors_contained(self):
        def callback(notification):
            raise RuntimeError("sink down")

        calls = []
        mech = FallbackMechanisms(
            FallbackConfig(notification_callback=callback),
            registry=FallbackRegistry([Recording("ok", 1, 0.9, calls)]),
        )
        assert run_offset(mech).success

    def test_default_sink_logs_warning(self, caplog):
        calls = []
        mech = FallbackMechanisms(registry=FallbackRegistry([Recording("ok", 1, 0.9, calls)]))
        with caplog.at_level(logging.WARNING, logger="wall_integrity.fallback.notifications"):
            run_offset(mech)
        assert any("Fallback for offset: ok" in r.getMessage() for r in caplog.records)

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            FallbackConfig(max_fallback_attempts=0)
        with pytest.raises(ValueError):
            FallbackConfig(quality_threshold=2.0)


# ---------------------------------------------------------------------------
# Default strategies
# ---------------------------------------------------------------------------

class TestOffsetFallback:
    def test_simplified_geometry_accepted(self):
        log = NotificationLog()
        mech = FallbackMechanisms(FallbackConfig(notification_callback=log))
        result = run_offset(mech)

        assert result.success
        assert result.fallback_used
        assert result.join_type == JoinType.BEVEL
        assert len(result.left_offset.points) >= 2
        assert len(result.right_offset.points) >= 2
        assert result.warnings[:2] == [
            "Fallback method used: simplified_geometry_offset",
            "Quality impact: 20%",
        ]
        assert "Miter joins replaced by bevel joins" in result.warnings

        notification = log.entries[0]
        assert notification.operation == "offset"
        assert notification.original_error == "offset failed"
        assert notification.can_retry
        assert notification.alternative_approaches
        assert any(g.startswith("Limitation:") for g in notification.user_guidance)

    def test_segmented_offset(self):
        mech = FallbackMechanisms(FallbackConfig(notification_callback=NotificationLog()))
        mech.remove_strategy("simplified_geometry_offset")
        result = run_offset(mech)
        assert result.success
        assert result.warnings[0] == "Fallback method used: segmented_offset"
        assert [p.as_tuple() for p in result.left_offset.points] == [
            (0.0, 100.0),
            (950.0, 50.0),
            (900.0, 1000.0),
        ]

    def test_quality_threshold_rejects_everything(self):
        log = NotificationLog()
        mech = FallbackMechanisms(FallbackConfig(quality_threshold=0.85, notification_callback=log))
        result = run_offset(mech)
        assert not result.success
        assert result.warnings == ["All offset fallback strategies failed"]
        assert len(log) == 1
        assert log.entries[0].fallback_method == "none_successful"

    def test_closed_loop_has_no_chord(self):
        loop = Curve.from_coords([(0, 0), (1000, 0), (1000, 1000), (0, 0)])
        request = OffsetRequest(baseline=loop, distance=100.0)
        result = BasicPolygonOffset().execute(FallbackOperation.OFFSET, request, offset_error())
        assert not result.success
        assert result.result is None
        assert result.error.kind == ErrorKind.OFFSET_FAILURE
        assert result.warnings == ["Baseline endpoints coincide; no chord to offset"]


class TestBooleanFallback:
    def test_simplified_union(self):
        mech = FallbackMechanisms(FallbackConfig(notification_callback=NotificationLog()))
        result = mech.execute_boolean_fallback("union", [horizontal_wall(), vertical_wall()], boolean_error())

        assert result.success
        assert result.operation_type == "union_fallback"
        assert not result.requires_healing
        solid = result.result_solid
        assert len(solid.solid_geometry) == 1
        assert solid.solid_geometry[0].area == pytest.approx(360_000)
        assert solid.healing_history[-1].operation_type == "simplified_boolean"

    def test_error_kind_selects_strategy(self):
        mech = FallbackMechanisms(FallbackConfig(notification_callback=NotificationLog()))
        error = GeometricError(kind=ErrorKind.NUMERICAL_INSTABILITY, message="unstable")
        result = mech.execute_boolean_fallback("union", [horizontal_wall(), vertical_wall()], error)
        assert result.success
        assert result.warnings[0] == "Fallback method used: approximate_boolean"
        assert result.requires_healing

    def test_no_solids_fails_without_raising(self):
        log = NotificationLog()
        mech = FallbackMechanisms(FallbackConfig(notification_callback=log))
        result = mech.execute_boolean_fallback("union", [], boolean_error())
        assert not result.success
        assert result.operation_type == "union_fallback_failed"
        assert log.entries[-1].can_retry is False

    def test_strategy_reports_missing_solids(self):
        request = BooleanRequest(operation="union", solids=[])
        result = SimplifiedBoolean().execute(FallbackOperation.BOOLEAN, request, boolean_error())
        assert not result.success
        assert result.error.kind == ErrorKind.BOOLEAN_FAILURE
        assert result.warnings == ["No solids to combine"]


class TestIntersectionFallback:
    def test_approximate_intersection(self):
        mech = FallbackMechanisms(FallbackConfig(notification_callback=NotificationLog()))
        result = mech.execute_intersection_fallback(
            [horizontal_wall(), vertical_wall()], IntersectionType.CROSS_JUNCTION, boolean_error()
        )
        assert result.success
        assert result.operation_type == "cross_junction_fallback"
        junction = result.result_solid.intersection_data[-1]
        assert junction.resolution_method == "approximate_intersection"
        assert junction.point == pytest.approx((500.0, 0.0))

    def test_graceful_degradation_when_registry_empty(self):
        log = NotificationLog()
        mech = FallbackMechanisms(FallbackConfig(notification_callback=log))
        for name in mech.available_strategies("intersection"):
            mech.remove_strategy(name)
        assert mech.available_strategies(FallbackOperation.INTERSECTION) == []

        result = mech.execute_intersection_fallback(
            [horizontal_wall(), vertical_wall()], IntersectionType.CROSS_JUNCTION, boolean_error()
        )
        assert result.success
        assert result.operation_type.startswith("graceful_degradation_")
        assert "Graceful degradation applied" in result.warnings
        assert result.requires_healing
        assert result.requires_manual_review
        assert len(result.result_solid.solid_geometry) == 1
        assert log.entries[-1].fallback_method == "graceful_degradation"

    def test_graceful_degradation_failure(self):
        log = NotificationLog()
        mech = FallbackMechanisms(FallbackConfig(notification_callback=log))
        for name in mech.available_strategies("intersection"):
            mech.remove_strategy(name)

        result = mech.execute_intersection_fallback([], IntersectionType.T_JUNCTION, boolean_error())
        assert not result.success
        assert result.requires_healing is False
        assert result.operation_type == "failed_degradation_t_junction"
        assert log.entries[-1].fallback_method == "none_successful"


class TestNotifications:
    def test_levels(self):
        def note(method, quality):
            return FallbackNotification(
                operation="offset", original_error="x", fallback_method=method, quality_impact=quality
            )

        assert note("a", 0.9).level == "info"
        assert note("a", 0.6).level == "warning"
        assert note("a", 0.3).level == "error"
        assert note("none_successful", 0.9).level == "error"

    def test_log_is_bounded(self):
        log = NotificationLog(max_entries=2)
        for quality in (0.9, 0.6, 0.3):
            log(FallbackNotification("offset", "x", "m", quality))
        assert len(log) == 2
        stats = log.statistics()
        assert stats["total"] == 2
        assert stats["by_level"] == {"warning": 1, "error": 1}
        assert stats["average_quality"] == pytest.approx(0.45)

    def test_empty_statistics(self):
        assert NotificationLog().statistics()["total"] == 0
