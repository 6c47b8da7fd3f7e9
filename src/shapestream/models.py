"""Pydantic data models for shapefile decoding."""

from __future__ import annotations

import codecs
from enum import IntEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .errors import ShapefileError

Coordinate = tuple[float, float]
Ring = list[Coordinate]


class ShapeType(IntEnum):
    """Shape type codes understood by the decoder."""

    NULL = 0
    POINT = 1
    POLYLINE = 3
    POLYGON = 5
    MULTIPOINT = 8


class ShapeFileHeader(BaseModel):
    """The fixed 100-byte preamble of a .shp file."""

    model_config = ConfigDict(frozen=True)

    file_length: int
    shape_type: ShapeType
    bbox: tuple[float, float, float, float]
    zbox: tuple[float, float] = (0.0, 0.0)
    mbox: tuple[float, float] = (0.0, 0.0)


class RawShapeRecord(BaseModel):
    """One non-null shape record: flat points plus part-start indices."""

    record_number: int
    shape_type: ShapeType
    points: list[Coordinate]
    parts: list[int] = []


class FieldDescriptor(BaseModel):
    """A dBASE field descriptor."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    length: int
    decimal_count: int = 0


class AttributeSchema(BaseModel):
    """Ordered field descriptors of a .dbf file plus its layout numbers."""

    model_config = ConfigDict(frozen=True)

    fields: list[FieldDescriptor]
    record_count: int
    header_length: int
    record_length: int

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]


AttributeRow = list[Any]


class Point(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: Coordinate


class MultiPoint(BaseModel):
    type: Literal["MultiPoint"] = "MultiPoint"
    coordinates: list[Coordinate]


class LineString(BaseModel):
    type: Literal["LineString"] = "LineString"
    coordinates: list[Coordinate]


class MultiLineString(BaseModel):
    type: Literal["MultiLineString"] = "MultiLineString"
    coordinates: list[list[Coordinate]]


class Polygon(BaseModel):
    """A polygon; ``coordinates[0]`` is the outer ring, the rest are holes."""

    type: Literal["Polygon"] = "Polygon"
    coordinates: list[Ring]


class MultiPolygon(BaseModel):
    type: Literal["MultiPolygon"] = "MultiPolygon"
    coordinates: list[list[Ring]]


Geometry = Annotated[
    Union[Point, MultiPoint, LineString, MultiLineString, Polygon, MultiPolygon],
    Field(discriminator="type"),
]


class Feature(BaseModel):
    """A geometry paired with its attribute row."""

    model_config = ConfigDict(frozen=True)

    type: Literal["Feature"] = "Feature"
    properties: dict[str, Any]
    geometry: Geometry | None = None


class FeatureCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    bbox: tuple[float, float, float, float] | None = None
    features: list[Feature]


class CrsInfo(BaseModel):
    """Coordinate reference system detected from a .prj file."""

    epsg: int | None = None
    name: str | None = None
    is_projected: bool | None = None


class HeaderEvent(BaseModel):
    kind: Literal["header"] = "header"
    header: ShapeFileHeader
    crs: CrsInfo | None = None


class FeatureEvent(BaseModel):
    kind: Literal["feature"] = "feature"
    feature: Feature


class ErrorEvent(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: Literal["error"] = "error"
    error: ShapefileError

    @field_serializer("error")
    def _dump_error(self, error: ShapefileError) -> dict[str, str]:
        return {"type": type(error).__name__, "message": str(error)}

    @property
    def message(self) -> str:
        return str(self.error)


class EndEvent(BaseModel):
    kind: Literal["end"] = "end"
    count: int


Event = Annotated[
    Union[HeaderEvent, FeatureEvent, ErrorEvent, EndEvent],
    Field(discriminator="kind"),
]


class ReadOptions(BaseModel):
    """Options controlling how a shapefile pair is decoded."""

    model_config = ConfigDict(frozen=True)

    encoding: str = "windows-1252"
    ignore_properties: bool = False

    @field_validator("encoding")
    @classmethod
    def _known_codec(cls, value: str) -> str:
        try:
            info = codecs.lookup(value)
        except LookupError:
            raise ValueError(f"Unknown encoding: {value}") from None
        if not info._is_text_encoding:
            raise ValueError(f"Not a text encoding: {value}")
        return value
