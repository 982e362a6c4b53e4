"""Point-list cleanup used by recovery, fallbacks and the edge-case handler.

All functions return new lists; inputs are never modified.
"""

from __future__ import annotations

import math

from wall_integrity.models.geometry import Point2D


def point_segment_distance(p: Point2D, a: Point2D, b: Point2D) -> float:
    """Distance from ``p`` to segment a-b."""
    dx, dy = b.x - a.x, b.y - a.y
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return p.distance_to(a)
    t = ((p.x - a.x) * dx + (p.y - a.y) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(p.x - (a.x + t * dx), p.y - (a.y + t * dy))


def douglas_peucker(points: list[Point2D], tolerance: float) -> list[Point2D]:
    """Douglas-Peucker simplification keeping both endpoints."""
    if len(points) <= 2 or tolerance <= 0:
        return list(points)

    keep = [False] * len(points)
    keep[0] = keep[-1] = True
    stack = [(0, len(points) - 1)]
    while stack:
        start, end = stack.pop()
        max_dist = 0.0
        index = -1
        for i in range(start + 1, end):
            d = point_segment_distance(points[i], points[start], points[end])
            if d > max_dist:
                max_dist = d
                index = i
        if index != -1 and max_dist > tolerance:
            keep[index] = True
            stack.append((start, index))
            stack.append((index, end))
    return [p for p, k in zip(points, keep) if k]


def remove_consecutive_duplicates(
    points: list[Point2D], tolerance: float = 1e-10, closed: bool = False
) -> list[Point2D]:
    """Drop points within ``tolerance`` of their predecessor."""
    if not points:
        return []
    kept = [points[0]]
    for p in points[1:]:
        if p.distance_to(kept[-1]) > tolerance:
            kept.append(p)
    if closed and len(kept) > 1 and kept[-1].distance_to(kept[0]) <= tolerance:
        kept.pop()
    return kept


def count_consecutive_duplicates(points: list[Point2D], tolerance: float = 1e-10) -> int:
    n = len(points)
    if n < 2:
        return 0
    return sum(
        1 for i in range(n) if points[i].distance_to(points[(i + 1) % n]) < tolerance
    )


def filter_short_segments(points: list[Point2D], min_length: float) -> tuple[list[Point2D], int]:
    """Drop each point that closes a segment shorter than ``min_length``.

    The last point is always kept so the polyline keeps its extent.
    """
    if len(points) < 2:
        return list(points), 0
    kept = [points[0]]
    removed = 0
    for p in points[1:-1]:
        if p.distance_to(kept[-1]) < min_length:
            removed += 1
            continue
        kept.append(p)
    last = points[-1]
    if len(kept) > 1 and last.distance_to(kept[-1]) < min_length:
        kept.pop()
        removed += 1
    kept.append(last)
    return kept, removed


def clamp_coordinates(points: list[Point2D], limit: float) -> tuple[list[Point2D], int]:
    """Clamp every coordinate into [-limit, limit]; returns (points, clamped count)."""
    result: list[Point2D] = []
    clamped = 0
    for p in points:
        x = max(-limit, min(limit, p.x))
        y = max(-limit, min(limit, p.y))
        if x != p.x or y != p.y:
            clamped += 1
            result.append(p.moved_to(x, y, "clamped"))
        else:
            result.append(p)
    return result, clamped


def snap_to_grid(points: list[Point2D], grid: float) -> list[Point2D]:
    """Round coordinates to multiples of ``grid``."""
    if grid <= 0:
        return list(points)
    return [
        p.moved_to(round(p.x / grid) * grid, round(p.y / grid) * grid, "snapped")
        for p in points
    ]


def merge_coincident_points(points: list[Point2D], tolerance: float) -> tuple[list[Point2D], int]:
    """Merge runs of consecutive points closer than ``tolerance`` into their average."""
    if not points:
        return [], 0
    result: list[Point2D] = []
    merged = 0
    group = [points[0]]
    for p in points[1:]:
        if p.distance_to(group[-1]) < tolerance:
            group.append(p)
            continue
        result.append(_average(group))
        merged += len(group) - 1
        group = [p]
    result.append(_average(group))
    merged += len(group) - 1
    return result, merged


def _average(group: list[Point2D]) -> Point2D:
    if len(group) == 1:
        return group[0]
    x = sum(p.x for p in group) / len(group)
    y = sum(p.y for p in group) / len(group)
    return group[0].moved_to(x, y, "merged")


def turning_angle(prev: Point2D, cur: Point2D, nxt: Point2D, precision: float = 1e-12) -> float | None:
    """Angle between incoming and outgoing directions at ``cur`` (radians).

    0 means straight on, pi means a full reversal. Returns None when
    either direction is shorter than ``precision`` or not finite.
    """
    v1x, v1y = cur.x - prev.x, cur.y - prev.y
    v2x, v2y = nxt.x - cur.x, nxt.y - cur.y
    mag1 = math.hypot(v1x, v1y)
    mag2 = math.hypot(v2x, v2y)
    if not (mag1 >= precision and mag2 >= precision):
        return None
    cos_angle = (v1x * v2x + v1y * v2y) / (mag1 * mag2)
    if not math.isfinite(cos_angle):
        return None
    return math.acos(max(-1.0, min(1.0, cos_angle)))
