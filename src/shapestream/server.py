"""FastAPI server for shapefile-to-GeoJSON decoding."""

from __future__ import annotations

import io
import zipfile
from collections.abc import Iterator
from pathlib import Path

from fastapi import FastAPI, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from loguru import logger
from pydantic import ValidationError

from .models import (
    ErrorEvent,
    FeatureCollection,
    FeatureEvent,
    HeaderEvent,
    ReadOptions,
)
from .reader import FeatureReader, detect_crs

app = FastAPI(title="Shapestream", version="0.1.0")

COMPANION_EXTS = {".shp", ".dbf", ".prj"}


@app.post("/features")
async def decode_shapefile(
    files: list[UploadFile],
    format: str = Query("json", pattern="^(json|ndjson)$"),
    encoding: str = Query("windows-1252"),
    ignore_properties: bool = Query(False),
):
    """Decode an uploaded shapefile into GeoJSON features.

    Accepts:
    - A single .zip containing shapefile components
    - Multiple files (.shp, .dbf, and optionally .prj)
    """
    try:
        options = ReadOptions(encoding=encoding, ignore_properties=ignore_properties)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors()[0]["msg"]) from None

    filename = (files[0].filename or "").lower() if len(files) == 1 else ""
    if filename.endswith(".zip"):
        file_map = _extract_zip(await files[0].read())
    else:
        file_map = await _collect_files(files)

    if ".shp" not in file_map:
        raise HTTPException(status_code=400, detail="Missing required .shp file")
    if ".dbf" not in file_map and not options.ignore_properties:
        raise HTTPException(status_code=400, detail="Missing required .dbf file")

    crs = None
    if ".prj" in file_map:
        crs = detect_crs(file_map[".prj"].decode("utf-8", errors="replace"))

    reader = FeatureReader(
        io.BytesIO(file_map[".shp"]),
        io.BytesIO(file_map[".dbf"]) if ".dbf" in file_map else None,
        options,
        crs=crs,
    )
    logger.info(f"Decoding uploaded shapefile ({len(file_map['.shp'])} bytes, format={format})")

    if format == "ndjson":
        return StreamingResponse(_event_lines(reader), media_type="application/x-ndjson")

    return await run_in_threadpool(_collect, reader)


async def _collect_files(files: list[UploadFile]) -> dict[str, bytes]:
    file_map: dict[str, bytes] = {}
    for f in files:
        ext = Path(f.filename or "").suffix.lower()
        if ext in COMPANION_EXTS:
            file_map[ext] = await f.read()
    return file_map


def _extract_zip(content: bytes) -> dict[str, bytes]:
    """Pick the first .shp in the archive and its companions by stem."""
    try:
        zf = zipfile.ZipFile(io.BytesIO(content))
    except zipfile.BadZipFile:
        raise HTTPException(status_code=400, detail="Upload is not a valid zip archive") from None

    with zf:
        names = zf.namelist()
        shp_name = next((n for n in names if n.lower().endswith(".shp")), None)
        if shp_name is None:
            raise HTTPException(status_code=400, detail="No .shp file found in zip archive")

        stem = shp_name[:-4].lower()
        file_map: dict[str, bytes] = {}
        for name in names:
            ext = Path(name).suffix.lower()
            if ext in COMPANION_EXTS and name[:-len(ext)].lower() == stem:
                file_map[ext] = zf.read(name)
    return file_map


def _collect(reader: FeatureReader) -> FeatureCollection:
    bbox = None
    features = []
    for event in reader.events():
        if isinstance(event, HeaderEvent):
            bbox = event.header.bbox
        elif isinstance(event, FeatureEvent):
            features.append(event.feature)
        elif isinstance(event, ErrorEvent):
            logger.warning(f"Shapefile decode failed: {event.message}")
            raise HTTPException(status_code=422, detail=event.message)
    return FeatureCollection(bbox=bbox, features=features)


def _event_lines(reader: FeatureReader) -> Iterator[str]:
    """One JSON document per event; an error ends the stream."""
    for event in reader.events():
        if isinstance(event, ErrorEvent):
            logger.warning(f"Shapefile decode failed mid-stream: {event.message}")
        yield event.model_dump_json() + "\n"
