"""Tests for the geometric error model."""

from datetime import timezone

import pytest
from pydantic import ValidationError

from wall_integrity.errors import (
    DegeneratePayload,
    ErrorFactory,
    ErrorKind,
    GeometricError,
    GeometryOperationError,
    OffsetPayload,
    SelfIntersectionPayload,
    Severity,
    TolerancePayload,
)


class TestGeometricError:
    def test_defaults(self):
        err = GeometricError(kind=ErrorKind.OFFSET_FAILURE, message="offset failed")
        assert err.severity == Severity.ERROR
        assert err.operation == "unknown"
        assert err.recoverable is True
        assert err.suggested_fix == "No suggestion available"
        assert err.payload is None
        assert err.timestamp.tzinfo == timezone.utc

    def test_kind_and_message_required(self):
        with pytest.raises(ValidationError):
            GeometricError(kind=ErrorKind.OFFSET_FAILURE)
        with pytest.raises(ValidationError):
            GeometricError(message="no kind")

    def test_immutable(self):
        err = GeometricError(kind=ErrorKind.TOPOLOGY_ERROR, message="x")
        with pytest.raises(ValidationError):
            err.message = "changed"

    def test_with_updates_returns_copy(self):
        err = GeometricError(kind=ErrorKind.TOPOLOGY_ERROR, message="x")
        updated = err.with_updates(severity=Severity.CRITICAL, recoverable=False)
        assert updated.severity == Severity.CRITICAL
        assert updated.recoverable is False
        assert err.severity == Severity.ERROR
        assert err.recoverable is True
        assert updated.message == "x"

    def test_explicit_non_recoverable(self):
        err = GeometricError(kind=ErrorKind.TOPOLOGY_ERROR, message="x", recoverable=False)
        assert err.recoverable is False
        assert not err.is_auto_recoverable

    def test_critical_never_auto_recoverable(self):
        err = GeometricError(
            kind=ErrorKind.DEGENERATE_GEOMETRY, message="x", severity=Severity.CRITICAL
        )
        assert err.recoverable is True
        assert not err.is_auto_recoverable

    def test_round_trip_keeps_payload(self):
        err = ErrorFactory.self_intersection_error(
            "crossing", intersection_points=[(5.0, 5.0)], segment_indices=[0, 2]
        )
        restored = GeometricError.from_dict(err.to_dict())
        assert restored == err
        assert isinstance(restored.payload, SelfIntersectionPayload)
        assert restored.payload.intersection_points == [(5.0, 5.0)]

    def test_to_dict_is_json_safe(self):
        err = ErrorFactory.offset_error("failed", 5.0, "miter", "polyline")
        data = err.to_dict()
        assert data["kind"] == "offset_failure"
        assert data["severity"] == "error"
        assert isinstance(data["timestamp"], str)
        assert data["payload"]["payload_type"] == "offset"

    def test_str(self):
        err = GeometricError(kind=ErrorKind.INVALID_PARAMETER, message="bad")
        assert str(err) == "[error] invalid_parameter: bad"


class TestSeverity:
    def test_ordering(self):
        assert Severity.WARNING.rank < Severity.ERROR.rank < Severity.CRITICAL.rank
        assert Severity.CRITICAL.at_least(Severity.ERROR)
        assert not Severity.WARNING.at_least(Severity.ERROR)

    def test_legacy_names_rejected(self):
        with pytest.raises(ValidationError):
            GeometricError(kind=ErrorKind.TOPOLOGY_ERROR, message="x", severity="high")


class TestErrorFactory:
    def test_offset_miter_suggests_other_joins(self):
        err = ErrorFactory.offset_error("failed", 5.0, "miter", "polyline")
        assert err.kind == ErrorKind.OFFSET_FAILURE
        assert err.suggested_fix == "Try using bevel or round join type for sharp angles"
        assert err.payload == OffsetPayload(offset_distance=5.0, join_type="miter", curve_type="polyline")

    def test_offset_other_join(self):
        err = ErrorFactory.offset_error("failed", 5.0, "round", "polyline")
        assert err.suggested_fix == "Check curve geometry and reduce offset distance if necessary"

    def test_tolerance_fix_mentions_required(self):
        err = ErrorFactory.tolerance_error("too tight", 1e-8, 1e-4, "offset")
        assert err.suggested_fix == "Increase tolerance to at least 1.00e-04 or simplify geometry"
        assert isinstance(err.payload, TolerancePayload)
        assert err.payload.failure.suggested_adjustment == 1e-4

    def test_boolean(self):
        err = ErrorFactory.boolean_error("union failed", "union", 3, 2)
        assert err.kind == ErrorKind.BOOLEAN_FAILURE
        assert err.operation == "boolean_union"
        assert err.payload.input_count == 3

    def test_degenerate(self):
        err = ErrorFactory.degenerate_geometry_error("empty", "curve", ["c1"])
        assert err.suggested_fix == "Remove degenerate elements or increase geometric precision"
        assert err.payload == DegeneratePayload(geometry_type="curve", degenerate_elements=["c1"])

    def test_numerical(self):
        err = ErrorFactory.numerical_instability_error("tiny", "segment_length", [1e-9], (1e-6, 1e6))
        assert err.kind == ErrorKind.NUMERICAL_INSTABILITY
        assert err.payload.expected_range == (1e-6, 1e6)
        assert err.suggested_fix == "Use higher precision arithmetic or normalize input values"


class TestGeometryOperationError:
    def test_carries_error(self):
        err = GeometricError(kind=ErrorKind.OFFSET_FAILURE, message="boom")
        exc = GeometryOperationError(err)
        assert exc.error is err
        assert "boom" in str(exc)
