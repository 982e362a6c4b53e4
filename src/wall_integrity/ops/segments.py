"""Segment-level geometry: intersection tests and self-intersection search."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from wall_integrity.models.geometry import Point2D


@dataclass
class SegmentHit:
    """Two segments of one polyline that cross."""

    first: int
    second: int
    point: tuple[float, float]


def segment_intersection(
    p1: Point2D, p2: Point2D, p3: Point2D, p4: Point2D, precision: float = 1e-12
) -> tuple[float, float] | None:
    """Intersection of segments p1-p2 and p3-p4, or None.

    Uses the parametric 2x2 determinant form; both parameters must lie in
    [0, 1]. Near-zero denominators are treated as parallel (no hit).
    Non-finite input never raises and yields None.
    """
    x1, y1, x2, y2 = p1.x, p1.y, p2.x, p2.y
    x3, y3, x4, y4 = p3.x, p3.y, p4.x, p4.y

    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if not abs(denom) >= precision:
        return None

    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / denom
    u = -((x1 - x2) * (y1 - y3) - (y1 - y2) * (x1 - x3)) / denom

    if 0 <= t <= 1 and 0 <= u <= 1:
        return (x1 + t * (x2 - x1), y1 + t * (y2 - y1))
    return None


def polyline_segments(points: list[Point2D], closed: bool) -> list[tuple[Point2D, Point2D]]:
    """Segments of a polyline; a closed one gets its implicit closing segment."""
    segs = [(points[i], points[i + 1]) for i in range(len(points) - 1)]
    if closed and len(points) > 2 and not points[-1] == points[0]:
        segs.append((points[-1], points[0]))
    return segs


def find_self_intersections(
    points: list[Point2D], closed: bool = False, precision: float = 1e-12
) -> list[SegmentHit]:
    """All crossings between non-adjacent segments.

    Adjacent segments share an endpoint and are skipped. When the
    polyline ends where it starts (closed, or with a repeated first
    point) the first and last segments are adjacent too.
    """
    segs = polyline_segments(points, closed)
    n = len(segs)
    wraps = n > 2 and segs[-1][1] == segs[0][0]
    hits: list[SegmentHit] = []
    for i in range(n):
        for j in range(i + 2, n):
            if wraps and i == 0 and j == n - 1:
                continue
            hit = segment_intersection(*segs[i], *segs[j], precision=precision)
            if hit is not None:
                hits.append(SegmentHit(first=i, second=j, point=hit))
    return hits


def remove_self_intersections(
    points: list[Point2D], closed: bool = False, precision: float = 1e-12
) -> tuple[list[Point2D], int]:
    """Delete points until no segments cross or only three points remain.

    For each crossing, the end point of the earlier segment is dropped.
    Returns the new point list and how many points were removed.
    """
    result = list(points)
    removed = 0
    while len(result) > 3:
        hits = find_self_intersections(result, closed, precision)
        if not hits:
            break
        del result[hits[0].first + 1]
        removed += 1
    return result, removed


def segment_lengths(points: list[Point2D]) -> np.ndarray:
    """Lengths of consecutive segments (open polyline)."""
    if len(points) < 2:
        return np.zeros(0)
    coords = np.array([(p.x, p.y) for p in points], dtype=float)
    with np.errstate(invalid="ignore", over="ignore"):
        return np.hypot(*np.diff(coords, axis=0).T)


def coincident_pairs(points: list[Point2D], tolerance: float) -> list[tuple[int, int]]:
    """All index pairs (i < j) closer than ``tolerance``, in index order."""
    if len(points) < 2:
        return []
    coords = np.array([(p.x, p.y) for p in points], dtype=float)
    with np.errstate(invalid="ignore", over="ignore"):
        diff = coords[:, None, :] - coords[None, :, :]
        dist = np.hypot(diff[..., 0], diff[..., 1])
        close = dist < tolerance
    i_idx, j_idx = np.nonzero(np.triu(close, k=1))
    return [(int(i), int(j)) for i, j in zip(i_idx, j_idx)]
