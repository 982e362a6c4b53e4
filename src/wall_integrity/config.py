"""Configuration models for the integrity subsystems.

All configs are plain pydantic models; invalid values fail at
construction with a pydantic ``ValidationError``.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field


class EdgeCaseConfig(BaseModel):
    """Thresholds used by the edge-case detector."""

    min_segment_length: float = Field(default=1e-6, gt=0)
    min_angle_tolerance: float = Field(
        default=1e-3, ge=0, description="Smallest acceptable turning angle (radians)"
    )
    max_angle_tolerance: float = Field(
        default=math.pi - 1e-3, le=math.pi, description="Largest acceptable turning angle (radians)"
    )
    numerical_precision: float = Field(default=1e-12, gt=0)
    self_intersection_tolerance: float = Field(default=1e-6, gt=0)
    coincident_point_tolerance: float = Field(default=1e-8, gt=0)

    @property
    def micro_segment_length(self) -> float:
        """Upper bound of the micro-segment band."""
        return self.min_segment_length * 10


class EdgeCaseHandlingConfig(BaseModel):
    """Settings for iterative auto-fixing of detected edge cases."""

    auto_fix_enabled: bool = True
    max_iterations: int = Field(default=5, ge=1)
    min_segment_length_after_fix: float = Field(default=1e-3, gt=0)
    angle_snap_tolerance: float = Field(default=math.pi / 180, ge=0)
    aggressive_healing: bool = False
    min_wall_thickness: float = Field(default=1e-3, gt=0)


class ReportingLevel(str, Enum):
    MINIMAL = "minimal"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"


class PipelineConfig(BaseModel):
    """Validation pipeline behavior."""

    enable_pre_validation: bool = True
    enable_post_validation: bool = True
    enable_auto_recovery: bool = True
    max_recovery_attempts: int = Field(default=3, ge=0)
    fail_fast: bool = False
    reporting_level: ReportingLevel = ReportingLevel.DETAILED
    default_thickness: float = Field(
        default=100.0, gt=0, description="Thickness assigned when recovering a non-positive one"
    )


class RecoveryConfig(BaseModel):
    """Automatic recovery session limits."""

    enable_auto_recovery: bool = True
    max_recovery_attempts: int = Field(default=5, ge=0)
    quality_threshold: float = Field(
        default=0.7, ge=0, le=1, description="Minimum quality a session must retain"
    )
    preserve_original_data: bool = True
    require_user_confirmation: bool = False
    fallback_to_simplification: bool = True

    @property
    def quality_budget(self) -> float:
        """Largest cumulative quality impact a session may spend."""
        return 1.0 - self.quality_threshold


class FallbackConfig(BaseModel):
    """Fallback search limits and notification sink."""

    max_fallback_attempts: int = Field(default=3, ge=1)
    quality_threshold: float = Field(
        default=0.5, ge=0, le=1, description="Minimum quality a fallback result must keep"
    )
    notification_callback: Optional[Callable[[Any], None]] = None
