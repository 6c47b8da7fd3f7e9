"""Streaming .shp reader.

Parses the 100-byte header up front, then yields one record at a time. Only
forward reads are used, so the source can be a pipe or socket whose length is
unknown.
"""

from __future__ import annotations

from collections.abc import Iterator
from struct import Struct, unpack_from
from typing import BinaryIO

from loguru import logger

from .errors import HeaderMalformed, RecordTruncated, UnsupportedShapeType
from .models import RawShapeRecord, ShapeFileHeader, ShapeType

FILE_CODE = 9994
HEADER_LENGTH = 100

_RECORD_HEADER = Struct(">ii")
_BBOX = Struct("<4d")
_COUNTS = Struct("<2i")
_POINT = Struct("<2d")

SUPPORTED_TYPES = frozenset(int(t) for t in ShapeType)


def read_exact(stream: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes, looping over short reads until EOF."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def parse_header(data: bytes) -> ShapeFileHeader:
    """Parse the fixed .shp/.shx preamble."""
    if len(data) < HEADER_LENGTH:
        raise HeaderMalformed(f"Shapefile header is {len(data)} bytes, expected {HEADER_LENGTH}")

    file_code, = unpack_from(">i", data, 0)
    if file_code != FILE_CODE:
        raise HeaderMalformed(f"Bad shapefile file code {file_code}, expected {FILE_CODE}")

    words, = unpack_from(">i", data, 24)
    shape_type, = unpack_from("<i", data, 32)
    if shape_type not in SUPPORTED_TYPES:
        raise UnsupportedShapeType(shape_type)

    return ShapeFileHeader(
        file_length=words * 2,
        shape_type=ShapeType(shape_type),
        bbox=_BBOX.unpack_from(data, 36),
        zbox=unpack_from("<2d", data, 68),
        mbox=unpack_from("<2d", data, 84),
    )


def parse_record(record_number: int, shape_type: int, content: bytes) -> RawShapeRecord:
    """Decode a non-null record payload (the shape type word already read)."""
    if shape_type == ShapeType.POINT:
        if len(content) < 4 + _POINT.size:
            raise RecordTruncated(f"Record {record_number}: point needs 20 bytes, got {len(content)}")
        return RawShapeRecord(
            record_number=record_number,
            shape_type=ShapeType.POINT,
            points=[_POINT.unpack_from(content, 4)],
        )

    # every other supported type starts with a bbox after the type word
    offset = 4 + _BBOX.size
    if shape_type == ShapeType.MULTIPOINT:
        if len(content) < offset + 4:
            raise RecordTruncated(f"Record {record_number}: multipoint header is truncated")
        num_parts = 0
        num_points, = unpack_from("<i", content, offset)
        offset += 4
    else:
        if len(content) < offset + _COUNTS.size:
            raise RecordTruncated(f"Record {record_number}: part/point counts are truncated")
        num_parts, num_points = _COUNTS.unpack_from(content, offset)
        offset += _COUNTS.size

    if num_parts < 0 or num_points < 0:
        raise RecordTruncated(f"Record {record_number}: negative part or point count")

    needed = offset + 4 * num_parts + _POINT.size * num_points
    if len(content) < needed:
        raise RecordTruncated(
            f"Record {record_number}: {num_parts} parts and {num_points} points need "
            f"{needed} bytes, content is {len(content)}"
        )

    parts = list(unpack_from(f"<{num_parts}i", content, offset))
    offset += 4 * num_parts
    flat = unpack_from(f"<{2 * num_points}d", content, offset)
    points = list(zip(flat[0::2], flat[1::2]))

    return RawShapeRecord(
        record_number=record_number,
        shape_type=ShapeType(shape_type),
        points=points,
        parts=parts,
    )


class ShpReader:
    """Forward-only reader over a .shp byte stream.

    Iterating yields a ``RawShapeRecord`` per record, or ``None`` for a Null
    shape, until the stream ends.
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self.header = parse_header(read_exact(stream, HEADER_LENGTH))
        self.shape_type = self.header.shape_type
        logger.debug(f"Shapefile header: type={self.shape_type.name} bbox={self.header.bbox}")

    def __iter__(self) -> Iterator[RawShapeRecord | None]:
        while True:
            record_header = read_exact(self._stream, _RECORD_HEADER.size)
            if not record_header:
                return
            if len(record_header) < _RECORD_HEADER.size:
                raise RecordTruncated("Stream ended inside a record header")

            record_number, words = _RECORD_HEADER.unpack(record_header)
            length = words * 2
            if length < 4:
                raise RecordTruncated(f"Record {record_number}: content length {length} is too short")

            content = read_exact(self._stream, length)
            if len(content) < length:
                raise RecordTruncated(
                    f"Record {record_number}: expected {length} content bytes, got {len(content)}"
                )

            shape_type, = unpack_from("<i", content, 0)
            if shape_type == ShapeType.NULL:
                yield None
                continue
            if shape_type != self.shape_type:
                raise UnsupportedShapeType(
                    shape_type,
                    f"Record {record_number}: shape type {shape_type} does not match "
                    f"file shape type {int(self.shape_type)}",
                )
            yield parse_record(record_number, shape_type, content)
