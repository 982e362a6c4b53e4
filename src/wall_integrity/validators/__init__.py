"""Detection and validation.

- edge_cases: pure detector for curve and wall-solid defects
- handler: iterative auto-fix of auto-fixable findings
- stages: built-in validation stages and their recovery policies
- pipeline: ordered stage execution with per-stage recovery
"""

from wall_integrity.validators.edge_cases import EdgeCaseDetector, EdgeCaseResult, EdgeCaseType
from wall_integrity.validators.handler import EdgeCaseHandler, EdgeCaseHandlingResult
from wall_integrity.validators.pipeline import (
    PipelineExecutionResult,
    ValidationPhase,
    ValidationPipeline,
)
from wall_integrity.validators.stages import (
    StageRecoveryResult,
    ValidationStage,
    ValidationStageResult,
    default_stages,
)

__all__ = [
    "EdgeCaseDetector",
    "EdgeCaseHandler",
    "EdgeCaseHandlingResult",
    "EdgeCaseResult",
    "EdgeCaseType",
    "PipelineExecutionResult",
    "StageRecoveryResult",
    "ValidationPhase",
    "ValidationPipeline",
    "ValidationStage",
    "ValidationStageResult",
    "default_stages",
]
