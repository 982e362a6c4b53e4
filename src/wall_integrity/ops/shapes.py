"""Shapely bridge: offsets, outlines and polygon booleans on model types.

Results are converted back to ``Curve``/``Polygon2D`` with clockwise
outer rings. Empty results raise ``GeometryOperationError``.
"""

from __future__ import annotations

from shapely.geometry import LineString, MultiLineString, Polygon
from shapely.geometry.polygon import orient
from shapely.ops import linemerge, unary_union

from wall_integrity.errors import ErrorFactory, ErrorKind, GeometricError, GeometryOperationError
from wall_integrity.models.geometry import Curve, Polygon2D, points_from_coords
from wall_integrity.models.wall import JoinType

_SHAPELY_JOIN = {
    JoinType.MITER: "mitre",
    JoinType.BEVEL: "bevel",
    JoinType.ROUND: "round",
}


def to_linestring(curve: Curve) -> LineString:
    coords = curve.coords()
    if curve.closed and len(coords) > 2 and coords[0] != coords[-1]:
        coords.append(coords[0])
    return LineString(coords)


def to_shapely(polygon: Polygon2D) -> Polygon:
    """Shapely polygon, repaired with ``buffer(0)`` when invalid."""
    if len(polygon.vertices) < 3:
        return Polygon()
    shape = Polygon(polygon.coords(), [[p.as_tuple() for p in hole] for hole in polygon.holes])
    if not shape.is_valid:
        shape = shape.buffer(0)
    return shape


def polygons_of(geom) -> list[Polygon]:
    """Non-empty polygons contained in any shapely geometry."""
    if geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    return [g for g in getattr(geom, "geoms", []) if isinstance(g, Polygon) and not g.is_empty]


def from_shapely(shape: Polygon, method: str = "shapely") -> Polygon2D:
    """Polygon2D with a clockwise outer ring and no repeated closing vertex."""
    shape = orient(shape, sign=-1.0)
    outer = list(shape.exterior.coords)[:-1]
    holes = [points_from_coords(list(ring.coords)[:-1], method) for ring in shape.interiors]
    return Polygon2D(vertices=points_from_coords(outer, method), holes=holes)


def offset_curve(
    curve: Curve,
    distance: float,
    join_type: JoinType = JoinType.MITER,
    mitre_limit: float = 5.0,
) -> Curve:
    """Parallel curve at ``distance`` (positive = left of travel direction)."""
    line = to_linestring(curve)
    result = line.offset_curve(distance, join_style=_SHAPELY_JOIN[join_type], mitre_limit=mitre_limit)
    if isinstance(result, MultiLineString):
        merged = linemerge(result)
        if isinstance(merged, MultiLineString):
            merged = max(merged.geoms, key=lambda g: g.length)
        result = merged
    if result.is_empty or len(result.coords) < 2:
        raise GeometryOperationError(
            ErrorFactory.offset_error(
                f"Offset by {distance} produced no geometry",
                offset_distance=distance,
                join_type=join_type.value,
                curve_type=curve.curve_type.value,
            )
        )
    coords = list(result.coords)
    if curve.closed and len(coords) > 2 and coords[0] == coords[-1]:
        coords = coords[:-1]
    return Curve(points=points_from_coords(coords, "offset"), closed=curve.closed, curve_type=curve.curve_type)


def wall_outline(
    baseline: Curve,
    thickness: float,
    join_type: JoinType = JoinType.MITER,
) -> list[Polygon2D]:
    """Solid polygons of a baseline swept symmetrically to ``thickness``."""
    line = to_linestring(baseline)
    shape = line.buffer(
        thickness / 2.0,
        cap_style="flat",
        join_style=_SHAPELY_JOIN[join_type],
    )
    polys = polygons_of(shape)
    if not polys:
        raise GeometryOperationError(
            GeometricError(
                kind=ErrorKind.DEGENERATE_GEOMETRY,
                message=f"Wall outline of thickness {thickness} is empty",
                operation="wall_outline",
                suggested_fix="Reconstruct curve with valid geometry",
            )
        )
    return [from_shapely(p, "outline") for p in polys]


def boolean(
    operation: str,
    first: list[Polygon2D],
    others: list[Polygon2D],
) -> list[Polygon2D]:
    """Union, intersection or difference of two polygon sets."""
    a = unary_union([to_shapely(p) for p in first])
    b = unary_union([to_shapely(p) for p in others]) if others else None
    if operation == "union":
        result = a if b is None else a.union(b)
    elif operation == "intersection":
        result = a if b is None else a.intersection(b)
    elif operation == "difference":
        result = a if b is None else a.difference(b)
    else:
        raise ValueError(f"Unknown boolean operation: {operation}")
    polys = polygons_of(result)
    if not polys:
        raise GeometryOperationError(
            ErrorFactory.boolean_error(
                f"Boolean {operation} produced no polygons",
                operation_type=operation,
                input_count=len(first) + len(others),
            )
        )
    return [from_shapely(p, f"boolean_{operation}") for p in polys]


def union_all(polygons: list[Polygon2D], snap: float = 0.0) -> list[Polygon2D]:
    """Union of polygons; ``snap`` > 0 closes gaps narrower than 2 * snap."""
    shapes = [to_shapely(p) for p in polygons]
    merged = unary_union(shapes)
    if snap > 0:
        merged = merged.buffer(snap, join_style="mitre").buffer(-snap, join_style="mitre")
    polys = polygons_of(merged)
    if not polys:
        raise GeometryOperationError(
            ErrorFactory.boolean_error(
                "Union produced no polygons",
                operation_type="union",
                input_count=len(polygons),
            )
        )
    return [from_shapely(p, "union") for p in polys]


def convex_outline(polygons: list[Polygon2D]) -> Polygon2D:
    """Convex hull of all vertices as a single polygon."""
    hull = unary_union([to_shapely(p) for p in polygons]).convex_hull
    polys = polygons_of(hull)
    if not polys:
        raise GeometryOperationError(
            ErrorFactory.degenerate_geometry_error(
                "Convex outline is empty",
                geometry_type="polygon",
                degenerate_elements=[p.id for p in polygons],
            )
        )
    return from_shapely(polys[0], "convex_hull")
