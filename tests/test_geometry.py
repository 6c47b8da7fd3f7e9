"""Tests for raw record to geometry conversion, including ring nesting."""

import math

import pytest

from shapestream import RawShapeRecord, ShapeType, UnsupportedShapeType, convert
from shapestream.geometry import nest_rings, ring_area, ring_contains, split_parts

from .conftest import CCW_HOLE, CW_FAR_SQUARE, CW_SQUARE


def _record(shape_type, rings):
    points, parts = [], []
    for ring in rings:
        parts.append(len(points))
        points.extend(ring)
    return RawShapeRecord(record_number=1, shape_type=shape_type, points=points, parts=parts)


def _reverse(ring):
    return list(reversed(ring))


class TestRingPrimitives:
    def test_clockwise_ring_has_positive_area(self):
        assert ring_area(CW_SQUARE) > 0

    def test_counter_clockwise_ring_has_negative_area(self):
        assert ring_area(CCW_HOLE) < 0
        assert ring_area(_reverse(CW_SQUARE)) == pytest.approx(-ring_area(CW_SQUARE))

    def test_area_is_spherical_excess(self):
        one_degree = [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0), (0.0, 0.0)]
        expected = math.radians(1) * math.sin(math.radians(1))
        assert ring_area(one_degree) == pytest.approx(expected, rel=1e-2)

    def test_contains(self):
        assert ring_contains(CW_SQUARE, (5.0, 5.0))
        assert not ring_contains(CW_SQUARE, (15.0, 5.0))
        assert not ring_contains(CW_SQUARE, (5.0, -1.0))

    def test_split_parts_runs_last_part_to_end(self):
        record = _record(ShapeType.POLYLINE, [[(0, 0), (1, 1)], [(2, 2), (3, 3), (4, 4)]])
        assert split_parts(record) == [[(0, 0), (1, 1)], [(2, 2), (3, 3), (4, 4)]]


class TestSimpleShapes:
    def test_point(self):
        record = RawShapeRecord(record_number=1, shape_type=ShapeType.POINT, points=[(1.0, 2.0)])
        geometry = convert(ShapeType.POINT, record)
        assert geometry.type == "Point"
        assert geometry.coordinates == (1.0, 2.0)

    def test_multipoint(self):
        record = RawShapeRecord(
            record_number=1, shape_type=ShapeType.MULTIPOINT, points=[(1.0, 2.0), (3.0, 4.0)]
        )
        geometry = convert(ShapeType.MULTIPOINT, record)
        assert geometry.type == "MultiPoint"
        assert geometry.coordinates == [(1.0, 2.0), (3.0, 4.0)]

    def test_single_part_polyline_is_linestring(self):
        geometry = convert(ShapeType.POLYLINE, _record(ShapeType.POLYLINE, [[(0, 0), (1, 1)]]))
        assert geometry.type == "LineString"
        assert geometry.coordinates == [(0.0, 0.0), (1.0, 1.0)]

    def test_multi_part_polyline(self):
        record = _record(ShapeType.POLYLINE, [[(0, 0), (1, 1)], [(5, 5), (6, 6)]])
        geometry = convert(ShapeType.POLYLINE, record)
        assert geometry.type == "MultiLineString"
        assert geometry.coordinates == [[(0.0, 0.0), (1.0, 1.0)], [(5.0, 5.0), (6.0, 6.0)]]

    def test_null_record(self):
        assert convert(ShapeType.POLYGON, None) is None
        assert convert(ShapeType.NULL, None) is None

    def test_unsupported_type(self):
        record = RawShapeRecord(record_number=1, shape_type=ShapeType.POINT, points=[(0.0, 0.0)])
        with pytest.raises(UnsupportedShapeType):
            convert(13, record)


class TestPolygonNesting:
    def test_hole_inside_shell(self):
        geometry = convert(ShapeType.POLYGON, _record(ShapeType.POLYGON, [CW_SQUARE, CCW_HOLE]))
        assert geometry.type == "Polygon"
        assert geometry.coordinates == [CW_SQUARE, CCW_HOLE]

    def test_disjoint_shells_make_multipolygon(self):
        geometry = convert(ShapeType.POLYGON, _record(ShapeType.POLYGON, [CW_SQUARE, CW_FAR_SQUARE]))
        assert geometry.type == "MultiPolygon"
        assert geometry.coordinates == [[CW_SQUARE], [CW_FAR_SQUARE]]

    def test_hole_listed_before_its_shell(self):
        rings = [CCW_HOLE, CW_FAR_SQUARE, CW_SQUARE]
        assert nest_rings(rings) == [[CW_FAR_SQUARE], [CW_SQUARE, CCW_HOLE]]

    def test_orphan_hole_becomes_shell(self):
        orphan = _reverse(CW_FAR_SQUARE)
        assert nest_rings([CW_SQUARE, orphan]) == [[CW_SQUARE], [orphan]]

    def test_lone_hole_is_polygon(self):
        geometry = convert(ShapeType.POLYGON, _record(ShapeType.POLYGON, [CCW_HOLE]))
        assert geometry.type == "Polygon"
        assert geometry.coordinates == [CCW_HOLE]

    def test_first_containing_shell_wins(self):
        inner_shell = [(1.0, 1.0), (1.0, 9.0), (9.0, 9.0), (9.0, 1.0), (1.0, 1.0)]
        assert nest_rings([CW_SQUARE, inner_shell, CCW_HOLE]) == [
            [CW_SQUARE, CCW_HOLE],
            [inner_shell],
        ]

    def test_holes_attach_to_their_own_shell(self):
        far_hole = [(21.0, 21.0), (24.0, 21.0), (24.0, 24.0), (21.0, 24.0), (21.0, 21.0)]
        rings = [CW_SQUARE, CW_FAR_SQUARE, far_hole, CCW_HOLE]
        geometry = convert(ShapeType.POLYGON, _record(ShapeType.POLYGON, rings))
        assert geometry.type == "MultiPolygon"
        assert geometry.coordinates == [[CW_SQUARE, CCW_HOLE], [CW_FAR_SQUARE, far_hole]]
