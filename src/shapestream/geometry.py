"""Conversion of raw shape records to GeoJSON geometries.

Polygon records store all rings flat. Rings wound clockwise are outer shells
and counter-clockwise rings are holes; orientation is taken from the sign of
the spherical excess of the ring, treating coordinates as lon/lat degrees.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence

from .errors import UnsupportedShapeType
from .models import (
    Coordinate,
    Geometry,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
    RawShapeRecord,
    Ring,
    ShapeType,
)

_QUARTER_PI = math.pi / 4


def split_parts(record: RawShapeRecord) -> list[list[Coordinate]]:
    """Slice the flat point list at each part offset; the last part runs to the end."""
    points = record.points
    bounds = list(record.parts) + [len(points)]
    return [list(points[start:end]) for start, end in zip(bounds, bounds[1:])]


def ring_area(ring: Sequence[Coordinate]) -> float:
    """Signed spherical excess of a lon/lat ring, in steradians.

    Non-negative for clockwise rings. Only the sign is meaningful for
    projected coordinates.
    """
    if not ring:
        return 0.0

    total = 0.0
    lon0, lat0 = ring[0]
    lambda0 = math.radians(lon0)
    phi0 = math.radians(lat0) / 2 + _QUARTER_PI
    cos_phi0, sin_phi0 = math.cos(phi0), math.sin(phi0)

    for lon, lat in list(ring[1:]) + [ring[0]]:
        lam = math.radians(lon)
        phi = math.radians(lat) / 2 + _QUARTER_PI
        d_lambda = lam - lambda0
        sd_lambda = 1 if d_lambda >= 0 else -1
        ad_lambda = sd_lambda * d_lambda
        cos_phi, sin_phi = math.cos(phi), math.sin(phi)
        k = sin_phi0 * sin_phi
        u = cos_phi0 * cos_phi + k * math.cos(ad_lambda)
        v = k * sd_lambda * math.sin(ad_lambda)
        total += math.atan2(v, u)
        lambda0, cos_phi0, sin_phi0 = lam, cos_phi, sin_phi

    return 2 * total


def ring_clockwise(ring: Sequence[Coordinate]) -> bool:
    return ring_area(ring) >= 0


def ring_contains(ring: Sequence[Coordinate], point: Coordinate) -> bool:
    """Even-odd ray casting test of ``point`` against the ring's boundary."""
    x, y = point
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def nest_rings(rings: list[Ring]) -> list[list[Ring]]:
    """Group rings into polygons: each outer ring followed by its holes.

    A hole goes to the first outer ring (in file order) containing its first
    vertex. A hole no outer ring contains becomes a polygon of its own.
    """
    polygons: list[list[Ring]] = []
    holes: list[Ring] = []
    for ring in rings:
        if ring_clockwise(ring):
            polygons.append([ring])
        else:
            holes.append(ring)

    for hole in holes:
        for polygon in polygons:
            if hole and ring_contains(polygon[0], hole[0]):
                polygon.append(hole)
                break
        else:
            polygons.append([hole])

    return polygons


def convert_point(record: RawShapeRecord) -> Point:
    return Point(coordinates=record.points[0])


def convert_multipoint(record: RawShapeRecord) -> MultiPoint:
    return MultiPoint(coordinates=record.points)


def convert_polyline(record: RawShapeRecord) -> LineString | MultiLineString:
    parts = split_parts(record)
    if len(parts) == 1:
        return LineString(coordinates=parts[0])
    return MultiLineString(coordinates=parts)


def convert_polygon(record: RawShapeRecord) -> Polygon | MultiPolygon:
    polygons = nest_rings(split_parts(record))
    if len(polygons) == 1:
        return Polygon(coordinates=polygons[0])
    return MultiPolygon(coordinates=polygons)


Converter = Callable[[RawShapeRecord], Geometry]

CONVERTERS: dict[ShapeType, Converter] = {
    ShapeType.POINT: convert_point,
    ShapeType.MULTIPOINT: convert_multipoint,
    ShapeType.POLYLINE: convert_polyline,
    ShapeType.POLYGON: convert_polygon,
}


def converter_for(shape_type: int) -> Converter | None:
    """Return the conversion function for a file shape type (None for Null files)."""
    if shape_type == ShapeType.NULL:
        return None
    try:
        return CONVERTERS[ShapeType(shape_type)]
    except (KeyError, ValueError):
        raise UnsupportedShapeType(shape_type) from None


def convert(shape_type: int, record: RawShapeRecord | None) -> Geometry | None:
    """Convert a raw record to a geometry; a Null record gives ``None``."""
    func = converter_for(shape_type)
    if record is None or func is None:
        return None
    return func(record)
