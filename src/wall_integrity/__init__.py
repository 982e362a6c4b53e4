"""Geometric integrity layer for wall modeling.

Detects defects in curves and wall solids, validates them through a
staged pipeline, and recovers through ranked strategies and fallbacks.
"""

from wall_integrity.config import (
    EdgeCaseConfig,
    EdgeCaseHandlingConfig,
    FallbackConfig,
    PipelineConfig,
    RecoveryConfig,
    ReportingLevel,
)
from wall_integrity.errors import (
    ErrorFactory,
    ErrorKind,
    GeometricError,
    GeometryOperationError,
    Severity,
)
from wall_integrity.fallback import FallbackMechanisms
from wall_integrity.models import Curve, Point2D, Polygon2D, WallSolid
from wall_integrity.recovery import AutomaticRecoverySystem
from wall_integrity.validators import (
    EdgeCaseDetector,
    EdgeCaseHandler,
    ValidationPhase,
    ValidationPipeline,
)

__version__ = "0.1.0"

__all__ = [
    "AutomaticRecoverySystem",
    "Curve",
    "EdgeCaseConfig",
    "EdgeCaseDetector",
    "EdgeCaseHandler",
    "EdgeCaseHandlingConfig",
    "ErrorFactory",
    "ErrorKind",
    "FallbackConfig",
    "FallbackMechanisms",
    "GeometricError",
    "GeometryOperationError",
    "PipelineConfig",
    "Point2D",
    "Polygon2D",
    "RecoveryConfig",
    "ReportingLevel",
    "Severity",
    "ValidationPhase",
    "ValidationPipeline",
    "WallSolid",
]
