"""Multi-stage validation pipeline with per-stage recovery.

Stages run in a fixed order. A failing stage that declares a recovery
function gets up to ``max_recovery_attempts`` tries; if the recovered
entity re-validates cleanly it replaces the entity for the remaining
stages and the re-validation is stored under ``<stage>_post_recovery``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from wall_integrity.config import PipelineConfig, ReportingLevel
from wall_integrity.errors import ErrorKind, GeometricError, Severity
from wall_integrity.models.wall import SCORE_FIELDS, QualityMetrics
from wall_integrity.validators.stages import (
    StageRecoveryResult,
    ValidationStage,
    ValidationStageResult,
    default_stages,
)

logger = logging.getLogger(__name__)

POST_RECOVERY_SUFFIX = "_post_recovery"
REVIEW_IMPACT = 0.2


class ValidationPhase(str, Enum):
    PRE = "pre"
    POST = "post"


@dataclass
class PipelineExecutionResult:
    """Aggregate outcome of one pipeline invocation."""

    success: bool
    phase: ValidationPhase
    operation: str
    data: Any
    stage_results: dict[str, ValidationStageResult] = field(default_factory=dict)
    recovery_results: dict[str, StageRecoveryResult] = field(default_factory=dict)
    overall_quality: QualityMetrics = field(default_factory=QualityMetrics)
    total_processing_time: float = 0.0
    recommended_actions: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def errors(self) -> list[GeometricError]:
        return [e for r in self.stage_results.values() for e in r.errors]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "phase": self.phase.value,
            "operation": self.operation,
            "skipped": self.skipped,
            "stages": {
                name: {
                    "passed": r.passed,
                    "errors": [e.to_dict() for e in r.errors],
                    "warnings": list(r.warnings),
                    "metrics": dict(r.metrics),
                }
                for name, r in self.stage_results.items()
            },
            "recoveries": {
                name: {
                    "success": r.success,
                    "method": r.recovery_method,
                    "quality_impact": r.quality_impact,
                    "warnings": list(r.warnings),
                }
                for name, r in self.recovery_results.items()
            },
            "overall_quality": self.overall_quality.model_dump(),
            "recommended_actions": list(self.recommended_actions),
            "total_processing_time": self.total_processing_time,
        }


class ValidationPipeline:
    def __init__(
        self,
        config: PipelineConfig | None = None,
        stages: list[ValidationStage] | None = None,
    ):
        self.config = config or PipelineConfig()
        self._stages = list(stages) if stages is not None else default_stages(self.config)

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self._stages]

    def add_stage(self, stage: ValidationStage, index: int | None = None) -> None:
        """Insert a stage (appended by default). Names must be unique."""
        if stage.name in self.stage_names:
            raise ValueError(f"Stage already registered: {stage.name}")
        if index is None:
            self._stages.append(stage)
        else:
            self._stages.insert(index, stage)

    def remove_stage(self, name: str) -> bool:
        before = len(self._stages)
        self._stages = [s for s in self._stages if s.name != name]
        return len(self._stages) != before

    def execute_validation(
        self,
        entity: Any,
        operation: str = "unknown",
        phase: ValidationPhase = ValidationPhase.POST,
    ) -> PipelineExecutionResult:
        """Run every stage on ``entity``; never raises for stage failures."""
        phase = ValidationPhase(phase)
        enabled = (
            self.config.enable_pre_validation
            if phase == ValidationPhase.PRE
            else self.config.enable_post_validation
        )
        if not enabled:
            return PipelineExecutionResult(
                success=True, phase=phase, operation=operation, data=entity, skipped=True
            )

        start = time.perf_counter()
        stage_results: dict[str, ValidationStageResult] = {}
        recovery_results: dict[str, StageRecoveryResult] = {}
        unresolved: list[str] = []
        current = entity

        for stage in self._stages:
            result = self._run_stage(stage, current)
            stage_results[stage.name] = result
            if result.passed:
                continue

            resolved = False
            if self._can_recover(stage, result):
                recovery = self._recover(stage, current, result.errors)
                recovery_results[stage.name] = recovery
                if recovery.success:
                    current = recovery.recovered_data
                    revalidated = self._run_stage(stage, current)
                    stage_results[stage.name + POST_RECOVERY_SUFFIX] = revalidated
                    resolved = revalidated.passed

            if not resolved:
                unresolved.append(stage.name)
                logger.debug("Stage %s unresolved for %s", stage.name, operation)
                if self.config.fail_fast:
                    break

        total_ms = (time.perf_counter() - start) * 1000
        result = PipelineExecutionResult(
            success=not unresolved,
            phase=phase,
            operation=operation,
            data=current,
            stage_results=stage_results,
            recovery_results=recovery_results,
            overall_quality=self._overall_quality(stage_results),
            total_processing_time=total_ms,
            recommended_actions=self._recommendations(unresolved, stage_results, recovery_results),
        )
        logger.info(
            "%s-validation of %s: %s (%d stages, %d recoveries, %.1fms)",
            phase.value, operation, "passed" if result.success else "failed",
            len(stage_results), len(recovery_results), total_ms,
        )
        return result

    # ------------------------------------------------------------------

    def _run_stage(self, stage: ValidationStage, entity: Any) -> ValidationStageResult:
        try:
            return stage.validate(entity)
        except Exception as exc:
            logger.warning("Stage %s raised", stage.name, exc_info=True)
            return ValidationStageResult(
                passed=False,
                errors=[
                    GeometricError(
                        kind=ErrorKind.VALIDATION_FAILURE,
                        severity=Severity.CRITICAL,
                        message=f"{stage.label} raised {type(exc).__name__}: {exc}",
                        operation=stage.name,
                        recoverable=False,
                        suggested_fix="Inspect the input geometry; the stage could not evaluate it",
                    )
                ],
            )

    def _can_recover(self, stage: ValidationStage, result: ValidationStageResult) -> bool:
        return (
            stage.recover is not None
            and self.config.enable_auto_recovery
            and self.config.max_recovery_attempts > 0
            and any(e.is_auto_recoverable for e in result.errors)
        )

    def _recover(
        self, stage: ValidationStage, entity: Any, errors: list[GeometricError]
    ) -> StageRecoveryResult:
        """Repeat the stage recovery until it succeeds within the stage ceiling."""
        data = entity
        total_impact = 0.0
        methods: list[str] = []
        warnings: list[str] = []

        for attempt in range(self.config.max_recovery_attempts):
            try:
                outcome = stage.recover(data, errors)
            except Exception as exc:
                logger.warning("Recovery for stage %s raised", stage.name, exc_info=True)
                warnings.append(f"Recovery attempt {attempt + 1} raised {type(exc).__name__}: {exc}")
                break

            total_impact += outcome.quality_impact
            warnings.extend(outcome.warnings)
            if outcome.recovery_method != "none":
                methods.append(outcome.recovery_method)
            if outcome.success and total_impact < stage.quality_ceiling:
                return StageRecoveryResult(
                    success=True,
                    recovered_data=outcome.recovered_data,
                    recovery_method="+".join(methods),
                    quality_impact=total_impact,
                    warnings=warnings,
                )
            if outcome.recovered_data is data:
                break
            data = outcome.recovered_data

        return StageRecoveryResult(
            success=False,
            recovered_data=data,
            recovery_method="+".join(methods) or "none",
            quality_impact=total_impact,
            warnings=warnings,
        )

    def _overall_quality(self, stage_results: dict[str, ValidationStageResult]) -> QualityMetrics:
        scores = {name: 1.0 for name in SCORE_FIELDS}
        for result in stage_results.values():
            for name, value in result.metrics.items():
                if name in scores:
                    scores[name] = min(scores[name], value)
        scores["manufacturability"] = min(
            scores["manufacturability"],
            scores["geometric_accuracy"],
            scores["topological_consistency"],
        )
        scores["architectural_compliance"] = min(
            scores["architectural_compliance"], scores["manufacturability"]
        )

        effective = self._effective_results(stage_results)
        errors = [e for r in effective.values() for e in r.errors]
        performance = stage_results.get("performance")
        counts: dict[str, int] = {
            "self_intersection_count": sum(1 for e in errors if e.kind == ErrorKind.SELF_INTERSECTION),
            "degenerate_element_count": sum(
                1 for e in errors if e.kind == ErrorKind.DEGENERATE_GEOMETRY
            ),
        }
        if performance is not None:
            counts["complexity"] = int(performance.metrics.get("complexity", 0))
            counts["memory_usage"] = int(performance.metrics.get("memory_usage", 0))
        return QualityMetrics(**scores, **counts)

    @staticmethod
    def _effective_results(
        stage_results: dict[str, ValidationStageResult],
    ) -> dict[str, ValidationStageResult]:
        """Latest result per stage (post-recovery wins)."""
        effective = {}
        for name, result in stage_results.items():
            if name.endswith(POST_RECOVERY_SUFFIX):
                effective[name[: -len(POST_RECOVERY_SUFFIX)]] = result
            else:
                effective.setdefault(name, result)
        return effective

    def _recommendations(
        self,
        unresolved: list[str],
        stage_results: dict[str, ValidationStageResult],
        recovery_results: dict[str, StageRecoveryResult],
    ) -> list[str]:
        level = self.config.reporting_level
        effective = self._effective_results(stage_results)
        actions: list[str] = []
        for name in unresolved:
            actions.append(f"Address {name} validation issues")
            if level == ReportingLevel.MINIMAL:
                continue
            for error in effective[name].errors:
                actions.append(f"{name}: {error.suggested_fix}")
            if level == ReportingLevel.COMPREHENSIVE:
                actions.extend(f"{name}: {w}" for w in effective[name].warnings)

        if level != ReportingLevel.MINIMAL:
            for name, recovery in recovery_results.items():
                if recovery.quality_impact > REVIEW_IMPACT:
                    actions.append(f"Review {name} recovery - significant quality impact")
        return actions
