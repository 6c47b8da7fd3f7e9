"""Feature assembly: pairs .shp records with .dbf rows by position."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any, BinaryIO

from loguru import logger
from pyproj import CRS
from pyproj.exceptions import CRSError

from .dbf import DbfReader
from .errors import ShapefileError
from .geometry import converter_for
from .models import (
    CrsInfo,
    EndEvent,
    ErrorEvent,
    Event,
    Feature,
    FeatureCollection,
    FeatureEvent,
    HeaderEvent,
    ReadOptions,
)
from .shp import ShpReader


def detect_crs(prj_source: str | Path | None) -> CrsInfo | None:
    """Parse CRS from a .prj WKT string or file path.

    Returns None when there is no .prj or its WKT is not understood.
    """
    if prj_source is None:
        return None

    wkt = prj_source if isinstance(prj_source, str) else ""
    if isinstance(prj_source, Path):
        if not prj_source.exists():
            return None
        wkt = prj_source.read_text(errors="replace")

    if not wkt.strip():
        return None

    try:
        crs = CRS.from_wkt(wkt)
    except CRSError:
        return None

    return CrsInfo(epsg=crs.to_epsg(), name=crs.name, is_projected=crs.is_projected)


class FeatureReader:
    """Drives a .shp stream and an optional .dbf stream into features.

    ``events()`` yields a ``HeaderEvent``, one ``FeatureEvent`` per geometry
    record, then exactly one ``EndEvent`` or ``ErrorEvent``. Iterating the
    reader directly yields the features and raises on error.
    """

    def __init__(
        self,
        shp: BinaryIO,
        dbf: BinaryIO | None = None,
        options: ReadOptions | None = None,
        *,
        crs: CrsInfo | None = None,
    ):
        self.options = options or ReadOptions()
        self.crs = crs
        self._shp_stream = shp
        self._dbf_stream = None if self.options.ignore_properties else dbf
        self._started = False

    def events(self) -> Iterator[Event]:
        if self._started:
            raise RuntimeError("FeatureReader can only be consumed once")
        self._started = True

        count = 0
        try:
            shp = ShpReader(self._shp_stream)
            convert = converter_for(shp.shape_type)
            yield HeaderEvent(header=shp.header, crs=self.crs)

            dbf, rows = self._load_rows()
            for record in shp:
                properties = self._properties(dbf, rows, count)
                geometry = convert(record) if convert and record is not None else None
                yield FeatureEvent(feature=Feature(properties=properties, geometry=geometry))
                count += 1
        except ShapefileError as e:
            yield ErrorEvent(error=e)
            return

        if rows is not None and len(rows) > count:
            logger.warning(f"{len(rows) - count} attribute rows have no geometry record and were dropped")
        yield EndEvent(count=count)

    def _load_rows(self) -> tuple[DbfReader | None, list[list[Any]] | None]:
        if self._dbf_stream is None:
            return None, None
        dbf = DbfReader(self._dbf_stream, self.options.encoding)
        return dbf, list(dbf)

    def _properties(self, dbf: DbfReader | None, rows: list[list[Any]] | None, index: int) -> dict[str, Any]:
        if dbf is None or rows is None:
            return {}
        if index >= len(rows):
            if index == len(rows):
                logger.warning(f"Geometry record {index} has no attribute row; using empty properties")
            return {}
        return dbf.properties(rows[index])

    def __iter__(self) -> Iterator[Feature]:
        for event in self.events():
            if isinstance(event, FeatureEvent):
                yield event.feature
            elif isinstance(event, ErrorEvent):
                raise event.error


def _base_path(path: str | Path) -> Path:
    path = Path(path)
    if path.suffix.lower() == ".shp":
        return path.with_suffix("")
    return path


@contextmanager
def open_shapefile(
    path: str | Path,
    *,
    encoding: str = "windows-1252",
    ignore_properties: bool = False,
) -> Iterator[FeatureReader]:
    """Open ``path`` (with or without the .shp suffix) and its .dbf sibling.

    The files stay open for the duration of the ``with`` block and are closed
    on exit, including when iteration is abandoned or fails.
    """
    options = ReadOptions(encoding=encoding, ignore_properties=ignore_properties)
    base = _base_path(path)
    shp_path = Path(f"{base}.shp")
    dbf_path = Path(f"{base}.dbf")

    with ExitStack() as stack:
        shp = stack.enter_context(open(shp_path, "rb"))
        dbf = None if options.ignore_properties else stack.enter_context(open(dbf_path, "rb"))
        crs = detect_crs(Path(f"{base}.prj"))
        logger.info(f"Opened shapefile {shp_path}")
        yield FeatureReader(shp, dbf, options, crs=crs)


def read_shapefile(path: str | Path, **options: Any) -> FeatureCollection:
    """Read every feature of a shapefile into a FeatureCollection."""
    with open_shapefile(path, **options) as reader:
        bbox = None
        features = []
        for event in reader.events():
            if isinstance(event, HeaderEvent):
                bbox = event.header.bbox
            elif isinstance(event, FeatureEvent):
                features.append(event.feature)
            elif isinstance(event, ErrorEvent):
                raise event.error
    return FeatureCollection(bbox=bbox, features=features)
