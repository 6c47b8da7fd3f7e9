"""Streaming shapefile (.shp + .dbf) to GeoJSON feature decoder."""

from .dbf import DbfReader
from .errors import (
    EncodingFailure,
    HeaderMalformed,
    RecordTruncated,
    ShapefileError,
    UnsupportedShapeType,
)
from .geometry import convert
from .models import (
    AttributeSchema,
    CrsInfo,
    EndEvent,
    ErrorEvent,
    Feature,
    FeatureCollection,
    FeatureEvent,
    HeaderEvent,
    RawShapeRecord,
    ReadOptions,
    ShapeFileHeader,
    ShapeType,
)
from .reader import FeatureReader, detect_crs, open_shapefile, read_shapefile
from .shp import ShpReader

__all__ = [
    "AttributeSchema",
    "CrsInfo",
    "DbfReader",
    "EncodingFailure",
    "EndEvent",
    "ErrorEvent",
    "Feature",
    "FeatureCollection",
    "FeatureEvent",
    "FeatureReader",
    "HeaderEvent",
    "HeaderMalformed",
    "RawShapeRecord",
    "ReadOptions",
    "RecordTruncated",
    "ShapeFileHeader",
    "ShapeType",
    "ShapefileError",
    "ShpReader",
    "UnsupportedShapeType",
    "convert",
    "detect_crs",
    "open_shapefile",
    "read_shapefile",
]
