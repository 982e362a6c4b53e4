"""Wall solids and their quality bookkeeping.

A ``WallSolid`` is a baseline curve swept to a thickness, with optional
left/right offset curves and the resulting solid polygons. Recovery code
never edits a wall in place: it builds a copy and appends a
``HealingOperation`` describing what changed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from wall_integrity.models.geometry import BoundingBox, Curve, Polygon2D, new_id


class JoinType(str, Enum):
    MITER = "miter"
    BEVEL = "bevel"
    ROUND = "round"


class IntersectionType(str, Enum):
    T_JUNCTION = "t_junction"
    L_JUNCTION = "l_junction"
    CROSS_JUNCTION = "cross_junction"
    PARALLEL_OVERLAP = "parallel_overlap"


class QualityMetrics(BaseModel):
    """Scores are in [0, 1] with 1 best; counts are raw."""

    geometric_accuracy: float = Field(default=1.0, ge=0, le=1)
    topological_consistency: float = Field(default=1.0, ge=0, le=1)
    manufacturability: float = Field(default=1.0, ge=0, le=1)
    architectural_compliance: float = Field(default=1.0, ge=0, le=1)
    numerical_stability: float = Field(default=1.0, ge=0, le=1)
    processing_efficiency: float = Field(default=1.0, ge=0, le=1)
    sliver_face_count: int = Field(default=0, ge=0)
    micro_gap_count: int = Field(default=0, ge=0)
    self_intersection_count: int = Field(default=0, ge=0)
    degenerate_element_count: int = Field(default=0, ge=0)
    complexity: int = Field(default=0, ge=0)
    memory_usage: int = Field(default=0, ge=0, description="Estimated bytes")


SCORE_FIELDS = (
    "geometric_accuracy",
    "topological_consistency",
    "manufacturability",
    "architectural_compliance",
    "numerical_stability",
    "processing_efficiency",
)


class IntersectionData(BaseModel):
    """A resolved junction between walls."""

    id: str = Field(default_factory=lambda: new_id("intersection"))
    intersection_type: IntersectionType
    participating_walls: list[str] = Field(default_factory=list)
    point: tuple[float, float]
    resolution_method: str = ""
    geometric_accuracy: float = Field(default=1.0, ge=0, le=1)
    validated: bool = False


class HealingOperation(BaseModel):
    """One recorded repair applied to a wall."""

    id: str = Field(default_factory=lambda: new_id("healing"))
    operation_type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    success: bool = True
    details: dict[str, Any] = Field(default_factory=dict)


class WallSolid(BaseModel):
    """A wall: baseline, thickness, offsets and solid polygons.

    ``thickness`` is not constrained here; non-positive values are
    reported by validation rather than rejected at construction.
    """

    id: str = Field(default_factory=lambda: new_id("wall"))
    baseline: Curve
    thickness: float
    wall_type: str = "Layout"
    left_offset: Optional[Curve] = None
    right_offset: Optional[Curve] = None
    solid_geometry: list[Polygon2D] = Field(default_factory=list)
    join_types: dict[str, JoinType] = Field(default_factory=dict)
    intersection_data: list[IntersectionData] = Field(default_factory=list)
    healing_history: list[HealingOperation] = Field(default_factory=list)
    quality: QualityMetrics = Field(default_factory=QualityMetrics)
    processing_time: float = Field(default=0.0, ge=0, description="Milliseconds")

    @property
    def vertex_count(self) -> int:
        """Baseline points plus all solid polygon vertices."""
        return len(self.baseline.points) + sum(
            len(poly.vertices) for poly in self.solid_geometry
        )

    @property
    def complexity(self) -> int:
        """Vertex count plus a weight per junction."""
        return self.vertex_count + 10 * len(self.intersection_data)

    @property
    def bounding_box(self) -> BoundingBox:
        points = list(self.baseline.points)
        for poly in self.solid_geometry:
            points.extend(poly.vertices)
        return BoundingBox.of(points)

    def healed(self, operation_type: str, details: dict[str, Any], **changes: Any) -> WallSolid:
        """Copy with ``changes`` applied and a healing record appended."""
        history = [
            *self.healing_history,
            HealingOperation(operation_type=operation_type, details=details),
        ]
        return self.model_copy(update={**changes, "healing_history": history})

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "wall_type": self.wall_type,
            "baseline_points": len(self.baseline.points),
            "baseline_length": round(self.baseline.length, 6),
            "thickness": self.thickness,
            "polygons": len(self.solid_geometry),
            "complexity": self.complexity,
            "healing_operations": len(self.healing_history),
        }


@runtime_checkable
class WallLike(Protocol):
    """What stages and strategies need from a wall-shaped entity."""

    baseline: Curve
    thickness: float
    solid_geometry: list[Polygon2D]
    quality: QualityMetrics
    processing_time: float

    def healed(self, operation_type: str, details: dict[str, Any], **changes: Any) -> Any: ...
