"""Geometric primitives: points, curves and polygons.

Models accept invalid geometry (too few points, coincident vertices,
non-finite coordinates) so that the detectors can report it.
"""

from __future__ import annotations

import math
import uuid
from enum import Enum
from typing import Iterator

from pydantic import BaseModel, Field


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class Point2D(BaseModel):
    """2D point in the XY plane (millimeters)."""

    x: float
    y: float
    tolerance: float = Field(default=1e-6, ge=0, description="Per-point tolerance")
    accuracy: float = Field(default=1.0, ge=0, le=1)
    validated: bool = False
    creation_method: str = "manual"

    def distance_to(self, other: Point2D) -> float:
        """Euclidean distance to another point."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)

    def moved_to(self, x: float, y: float, method: str) -> Point2D:
        """Copy at new coordinates, tagged with how it was produced."""
        return self.model_copy(update={"x": x, "y": y, "creation_method": method})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Point2D):
            return NotImplemented
        return math.isclose(self.x, other.x, abs_tol=1e-6) and math.isclose(
            self.y, other.y, abs_tol=1e-6
        )

    def __hash__(self) -> int:
        return hash((round(self.x, 6), round(self.y, 6)))


def points_from_coords(coords, method: str = "manual") -> list[Point2D]:
    """Build points from an iterable of (x, y) pairs."""
    return [Point2D(x=float(x), y=float(y), creation_method=method) for x, y in coords]


class BoundingBox(BaseModel):
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @classmethod
    def of(cls, points: list[Point2D]) -> BoundingBox:
        if not points:
            return cls(min_x=0.0, min_y=0.0, max_x=0.0, max_y=0.0)
        xs = [p.x for p in points]
        ys = [p.y for p in points]
        return cls(min_x=min(xs), min_y=min(ys), max_x=max(xs), max_y=max(ys))


class CurveType(str, Enum):
    """How the curve was authored. All types are measured as polylines."""

    POLYLINE = "polyline"
    BEZIER = "bezier"
    SPLINE = "spline"
    ARC = "arc"


class Curve(BaseModel):
    """Ordered sequence of points, optionally closed.

    A closed curve has an implicit segment from the last point back to
    the first; the first point is not repeated.
    """

    id: str = Field(default_factory=lambda: new_id("curve"))
    points: list[Point2D] = Field(default_factory=list)
    closed: bool = False
    curve_type: CurveType = CurveType.POLYLINE

    @classmethod
    def from_coords(cls, coords, closed: bool = False, **kwargs) -> Curve:
        return cls(points=points_from_coords(coords), closed=closed, **kwargs)

    def segments(self) -> Iterator[tuple[int, Point2D, Point2D]]:
        """Yield (index, start, end) for every segment, including the closing one."""
        pts = self.points
        for i in range(len(pts) - 1):
            yield i, pts[i], pts[i + 1]
        if self.closed and len(pts) > 2 and not pts[-1] == pts[0]:
            yield len(pts) - 1, pts[-1], pts[0]

    @property
    def length(self) -> float:
        """Total length, closing segment included."""
        return sum(a.distance_to(b) for _, a, b in self.segments())

    @property
    def bounding_box(self) -> BoundingBox:
        return BoundingBox.of(self.points)

    def coords(self) -> list[tuple[float, float]]:
        return [p.as_tuple() for p in self.points]

    def with_points(self, points: list[Point2D]) -> Curve:
        """Copy with the same id and flags but new points."""
        return self.model_copy(update={"points": list(points)})


class Polygon2D(BaseModel):
    """Polygon in the XY plane. The outer ring auto-closes."""

    id: str = Field(default_factory=lambda: new_id("polygon"))
    vertices: list[Point2D] = Field(default_factory=list)
    holes: list[list[Point2D]] = Field(default_factory=list)

    @classmethod
    def from_coords(cls, coords, **kwargs) -> Polygon2D:
        return cls(vertices=points_from_coords(coords), **kwargs)

    @property
    def signed_area(self) -> float:
        """Shoelace area; positive for counter-clockwise rings."""
        n = len(self.vertices)
        area = 0.0
        for i in range(n):
            j = (i + 1) % n
            area += self.vertices[i].x * self.vertices[j].y
            area -= self.vertices[j].x * self.vertices[i].y
        return area / 2.0

    @property
    def area(self) -> float:
        """Absolute outer area minus hole areas."""
        hole_area = sum(
            abs(Polygon2D(vertices=hole).signed_area) for hole in self.holes
        )
        return abs(self.signed_area) - hole_area

    @property
    def perimeter(self) -> float:
        """Outer ring length."""
        n = len(self.vertices)
        return sum(
            self.vertices[i].distance_to(self.vertices[(i + 1) % n]) for i in range(n)
        )

    @property
    def is_clockwise(self) -> bool:
        # Edge sum (x2 - x1)(y2 + y1) is positive for clockwise rings
        n = len(self.vertices)
        total = 0.0
        for i in range(n):
            a = self.vertices[i]
            b = self.vertices[(i + 1) % n]
            total += (b.x - a.x) * (b.y + a.y)
        return total > 0

    @property
    def bounding_box(self) -> BoundingBox:
        return BoundingBox.of(self.vertices)

    def coords(self) -> list[tuple[float, float]]:
        return [p.as_tuple() for p in self.vertices]

    def with_vertices(self, vertices: list[Point2D]) -> Polygon2D:
        return self.model_copy(update={"vertices": list(vertices)})
