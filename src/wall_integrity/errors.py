"""Geometric error taxonomy.

Every failure the integrity layer reports is a ``GeometricError`` value:
a kind tag, a severity on a single ordered scale, a human-readable
message and an optional kind-specific payload. Errors are immutable;
``with_updates`` returns a modified copy.

``ErrorFactory`` builds the common kinds with their suggested fixes
pre-filled.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    """Classification tag for a geometric failure."""

    OFFSET_FAILURE = "offset_failure"
    BOOLEAN_FAILURE = "boolean_failure"
    SELF_INTERSECTION = "self_intersection"
    DEGENERATE_GEOMETRY = "degenerate_geometry"
    TOLERANCE_EXCEEDED = "tolerance_exceeded"
    NUMERICAL_INSTABILITY = "numerical_instability"
    DUPLICATE_VERTICES = "duplicate_vertices"
    VALIDATION_FAILURE = "validation_failure"
    COMPLEXITY_EXCEEDED = "complexity_exceeded"
    INVALID_PARAMETER = "invalid_parameter"
    TOPOLOGICAL_CONSISTENCY = "topological_consistency"
    DIMENSIONAL_ACCURACY = "dimensional_accuracy"
    STRUCTURAL_INTEGRITY = "structural_integrity"
    MANUFACTURING_FEASIBILITY = "manufacturing_feasibility"
    PERFORMANCE_OPTIMIZATION = "performance_optimization"
    TOPOLOGY_ERROR = "topology_error"


class Severity(str, Enum):
    """Ordered severity scale: warning < error < critical."""

    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, other: Severity) -> bool:
        return self.rank >= other.rank


_SEVERITY_RANK = {Severity.WARNING: 0, Severity.ERROR: 1, Severity.CRITICAL: 2}


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class OffsetPayload(_Payload):
    payload_type: Literal["offset"] = "offset"
    offset_distance: float
    join_type: str
    curve_type: str


class ToleranceFailure(_Payload):
    failure_type: str
    severity: float = Field(ge=0, le=1, description="0 = negligible, 1 = total failure")
    suggested_adjustment: float


class TolerancePayload(_Payload):
    payload_type: Literal["tolerance"] = "tolerance"
    current_tolerance: float
    required_tolerance: float
    tolerance_context: str
    failure: ToleranceFailure


class BooleanPayload(_Payload):
    payload_type: Literal["boolean"] = "boolean"
    operation_type: str
    input_count: int = Field(ge=0)
    complexity_level: int = Field(ge=0)


class SelfIntersectionPayload(_Payload):
    payload_type: Literal["self_intersection"] = "self_intersection"
    intersection_points: list[tuple[float, float]] = Field(default_factory=list)
    segment_indices: list[int] = Field(default_factory=list)


class DegeneratePayload(_Payload):
    payload_type: Literal["degenerate"] = "degenerate"
    geometry_type: str
    degenerate_elements: list[str] = Field(default_factory=list)


class NumericalInstabilityPayload(_Payload):
    payload_type: Literal["numerical"] = "numerical"
    calculation_type: str
    input_values: list[float] = Field(default_factory=list)
    expected_range: tuple[float, float]


ErrorPayload = Annotated[
    Union[
        OffsetPayload,
        TolerancePayload,
        BooleanPayload,
        SelfIntersectionPayload,
        DegeneratePayload,
        NumericalInstabilityPayload,
    ],
    Field(discriminator="payload_type"),
]


# ---------------------------------------------------------------------------
# Error value
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeometricError(BaseModel):
    """A classified geometric failure.

    Critical errors are never auto-recovered regardless of ``recoverable``.
    """

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    severity: Severity = Severity.ERROR
    operation: str = "unknown"
    recoverable: bool = True
    suggested_fix: str = "No suggestion available"
    timestamp: datetime = Field(default_factory=_utcnow)
    payload: Optional[ErrorPayload] = None

    @property
    def is_auto_recoverable(self) -> bool:
        """True if an orchestrator may attempt recovery without asking."""
        return self.recoverable and self.severity != Severity.CRITICAL

    def with_updates(
        self,
        *,
        severity: Severity | None = None,
        suggested_fix: str | None = None,
        recoverable: bool | None = None,
    ) -> GeometricError:
        """Return a copy with the given fields replaced."""
        update: dict[str, Any] = {}
        if severity is not None:
            update["severity"] = severity
        if suggested_fix is not None:
            update["suggested_fix"] = suggested_fix
        if recoverable is not None:
            update["recoverable"] = recoverable
        return self.model_copy(update=update)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe dictionary including the payload."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GeometricError:
        return cls.model_validate(data)

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.kind.value}: {self.message}"


class GeometryOperationError(Exception):
    """Raised by a geometric operation or strategy; carries a GeometricError."""

    def __init__(self, error: GeometricError):
        super().__init__(str(error))
        self.error = error


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class ErrorFactory:
    """Constructors for the common error kinds with suggested fixes filled in."""

    @staticmethod
    def offset_error(
        message: str,
        offset_distance: float,
        join_type: str,
        curve_type: str,
        severity: Severity = Severity.ERROR,
    ) -> GeometricError:
        if join_type == "miter":
            fix = "Try using bevel or round join type for sharp angles"
        else:
            fix = "Check curve geometry and reduce offset distance if necessary"
        return GeometricError(
            kind=ErrorKind.OFFSET_FAILURE,
            severity=severity,
            message=message,
            operation="offset",
            suggested_fix=fix,
            payload=OffsetPayload(
                offset_distance=offset_distance,
                join_type=join_type,
                curve_type=curve_type,
            ),
        )

    @staticmethod
    def tolerance_error(
        message: str,
        current_tolerance: float,
        required_tolerance: float,
        context: str,
        failure_type: str = "precision",
        failure_severity: float = 0.5,
    ) -> GeometricError:
        return GeometricError(
            kind=ErrorKind.TOLERANCE_EXCEEDED,
            severity=Severity.WARNING,
            message=message,
            operation="tolerance_check",
            suggested_fix=(
                f"Increase tolerance to at least {required_tolerance:.2e} "
                "or simplify geometry"
            ),
            payload=TolerancePayload(
                current_tolerance=current_tolerance,
                required_tolerance=required_tolerance,
                tolerance_context=context,
                failure=ToleranceFailure(
                    failure_type=failure_type,
                    severity=failure_severity,
                    suggested_adjustment=required_tolerance,
                ),
            ),
        )

    @staticmethod
    def boolean_error(
        message: str,
        operation_type: str,
        input_count: int,
        complexity_level: int = 0,
        severity: Severity = Severity.ERROR,
    ) -> GeometricError:
        return GeometricError(
            kind=ErrorKind.BOOLEAN_FAILURE,
            severity=severity,
            message=message,
            operation=f"boolean_{operation_type}",
            suggested_fix=(
                "Try simplifying input geometry or using alternative boolean algorithms"
            ),
            payload=BooleanPayload(
                operation_type=operation_type,
                input_count=input_count,
                complexity_level=complexity_level,
            ),
        )

    @staticmethod
    def self_intersection_error(
        message: str,
        intersection_points: list[tuple[float, float]],
        segment_indices: list[int],
        severity: Severity = Severity.ERROR,
    ) -> GeometricError:
        return GeometricError(
            kind=ErrorKind.SELF_INTERSECTION,
            severity=severity,
            message=message,
            operation="self_intersection_check",
            suggested_fix=(
                "Remove self-intersecting segments or apply geometry healing algorithms"
            ),
            payload=SelfIntersectionPayload(
                intersection_points=intersection_points,
                segment_indices=segment_indices,
            ),
        )

    @staticmethod
    def degenerate_geometry_error(
        message: str,
        geometry_type: str,
        degenerate_elements: list[str],
        severity: Severity = Severity.ERROR,
    ) -> GeometricError:
        return GeometricError(
            kind=ErrorKind.DEGENERATE_GEOMETRY,
            severity=severity,
            message=message,
            operation="geometry_validation",
            suggested_fix="Remove degenerate elements or increase geometric precision",
            payload=DegeneratePayload(
                geometry_type=geometry_type,
                degenerate_elements=degenerate_elements,
            ),
        )

    @staticmethod
    def numerical_instability_error(
        message: str,
        calculation_type: str,
        input_values: list[float],
        expected_range: tuple[float, float],
        severity: Severity = Severity.ERROR,
    ) -> GeometricError:
        return GeometricError(
            kind=ErrorKind.NUMERICAL_INSTABILITY,
            severity=severity,
            message=message,
            operation=calculation_type,
            suggested_fix="Use higher precision arithmetic or normalize input values",
            payload=NumericalInstabilityPayload(
                calculation_type=calculation_type,
                input_values=input_values,
                expected_range=expected_range,
            ),
        )
