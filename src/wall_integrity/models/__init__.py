"""Geometry and wall models."""

from wall_integrity.models.geometry import (
    BoundingBox,
    Curve,
    CurveType,
    Point2D,
    Polygon2D,
    points_from_coords,
)
from wall_integrity.models.wall import (
    HealingOperation,
    IntersectionData,
    IntersectionType,
    JoinType,
    QualityMetrics,
    WallLike,
    WallSolid,
)

__all__ = [
    "BoundingBox",
    "Curve",
    "CurveType",
    "HealingOperation",
    "IntersectionData",
    "IntersectionType",
    "JoinType",
    "Point2D",
    "Polygon2D",
    "QualityMetrics",
    "WallLike",
    "WallSolid",
    "points_from_coords",
]
