from datetime import date
from pathlib import Path
from struct import pack

import pytest
import shapefile
from pyproj import CRS

CW_SQUARE = [(0.0, 0.0), (0.0, 10.0), (10.0, 10.0), (10.0, 0.0), (0.0, 0.0)]
CCW_HOLE = [(2.0, 2.0), (8.0, 2.0), (8.0, 8.0), (2.0, 8.0), (2.0, 2.0)]
CW_FAR_SQUARE = [(20.0, 20.0), (20.0, 25.0), (25.0, 25.0), (25.0, 20.0), (20.0, 20.0)]


@pytest.fixture
def points_path(tmp_path) -> Path:
    """Three points with typed attributes and a WGS84 .prj."""
    base = tmp_path / "places"
    with shapefile.Writer(str(base), shapeType=shapefile.POINT, encoding="cp1252") as w:
        w.field("NAME", "C", 20)
        w.field("COUNT", "N", 10)
        w.field("AREA", "N", 12, 3)
        w.field("OPENED", "D")
        w.field("ACTIVE", "L")
        w.point(1.0, 2.0)
        w.record("Café", 42, 1.5, date(2020, 1, 2), True)
        w.point(-3.5, 53.5)
        w.record("Harbour", 7, 0.25, date(1999, 12, 31), False)
        w.point(10.0, -10.0)
        w.record("", 0, 2.0, date(2001, 6, 15), True)
    base.with_suffix(".prj").write_text(CRS.from_epsg(4326).to_wkt())
    return base


@pytest.fixture
def lines_path(tmp_path) -> Path:
    base = tmp_path / "roads"
    with shapefile.Writer(str(base), shapeType=shapefile.POLYLINE) as w:
        w.field("ID", "N", 5)
        w.line([[(0.0, 0.0), (1.0, 1.0), (2.0, 0.0)]])
        w.record(1)
        w.line([[(0.0, 0.0), (1.0, 0.0)], [(5.0, 5.0), (6.0, 6.0), (7.0, 5.0)]])
        w.record(2)
    return base


@pytest.fixture
def polygons_path(tmp_path) -> Path:
    base = tmp_path / "parcels"
    with shapefile.Writer(str(base), shapeType=shapefile.POLYGON) as w:
        w.field("PARCEL", "C", 10)
        w.poly([CW_SQUARE, CCW_HOLE])
        w.record("donut")
        w.poly([CW_SQUARE, CW_FAR_SQUARE])
        w.record("islands")
        w.null()
        w.record("empty")
    return base


def _shp_header(shape_type: int, words: int = 50) -> bytes:
    return (
        pack(">7i", 9994, 0, 0, 0, 0, 0, words)
        + pack("<2i", 1000, shape_type)
        + pack("<4d", 0.0, 0.0, 10.0, 10.0)
        + pack("<4d", 0.0, 0.0, 0.0, 0.0)
    )


def _shp_record(number: int, content: bytes) -> bytes:
    return pack(">2i", number, len(content) // 2) + content


@pytest.fixture
def make_shp():
    """Build .shp bytes from a file shape type and raw record contents."""

    def build(shape_type: int, contents: list[bytes]) -> bytes:
        body = b"".join(_shp_record(i + 1, c) for i, c in enumerate(contents))
        return _shp_header(shape_type, (100 + len(body)) // 2) + body

    return build


@pytest.fixture
def point_content():
    def build(x: float, y: float) -> bytes:
        return pack("<i2d", 1, x, y)

    return build


@pytest.fixture
def make_dbf():
    """Build .dbf bytes.

    ``fields`` are (name, type, length, decimals); ``rows`` are (flag, [raw values]).
    """

    def build(fields, rows, record_count=None, terminator=True, record_length=None) -> bytes:
        header_length = 32 + 32 * len(fields) + 1
        width = 1 + sum(f[2] for f in fields)
        count = len(rows) if record_count is None else record_count
        out = pack(
            "<4BIHH20x", 3, 124, 1, 1, count, header_length,
            width if record_length is None else record_length,
        )
        for name, typ, length, decimals in fields:
            out += pack("<11sc4xBB14x", name.encode("ascii"), typ.encode("ascii"), length, decimals)
        out += b"\r" if terminator else b" "
        for flag, values in rows:
            out += flag
            for (_, _, length, _), value in zip(fields, values):
                out += value.ljust(length, b" ")[:length]
        return out + b"\x1a"

    return build
