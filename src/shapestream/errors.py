"""Errors raised while decoding a shapefile pair.

Every error is fatal to the stream it occurs in: the bytes are malformed and
reading them again would fail the same way.
"""


class ShapefileError(Exception):
    """Base class for all decoding failures."""


class HeaderMalformed(ShapefileError):
    """A .shp or .dbf header could not be parsed."""


class RecordTruncated(ShapefileError):
    """A record ended before its declared content did."""


class UnsupportedShapeType(ShapefileError):
    """A shape type code outside Null, Point, PolyLine, Polygon, MultiPoint."""

    def __init__(self, shape_type: int, message: str | None = None):
        self.shape_type = shape_type
        super().__init__(message or f"Unsupported shape type: {shape_type}")


class EncodingFailure(ShapefileError):
    """Attribute bytes are not valid under the requested codec."""
