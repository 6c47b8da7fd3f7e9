"""dBASE (.dbf) attribute table reader."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date
from struct import unpack_from
from typing import Any, BinaryIO

from loguru import logger

from .errors import EncodingFailure, HeaderMalformed, RecordTruncated
from .models import AttributeRow, AttributeSchema, FieldDescriptor
from .shp import read_exact

DESCRIPTOR_LENGTH = 32
TERMINATOR = 0x0D
EOF_MARKER = 0x1A

NUMERIC_TYPES = frozenset("NFBM")


class DbfReader:
    """Reads the field schema of a .dbf stream, then its rows on demand.

    Rows carrying the deletion flag are still yielded.
    """

    def __init__(self, stream: BinaryIO, encoding: str = "windows-1252"):
        self._stream = stream
        self.encoding = encoding
        self.schema = self._read_schema()
        self.names = self.schema.names
        logger.debug(
            f"DBF header: {self.schema.record_count} records, fields={self.names}"
        )

    def _read_schema(self) -> AttributeSchema:
        prefix = read_exact(self._stream, 32)
        if len(prefix) < 32:
            raise HeaderMalformed(f"DBF header is {len(prefix)} bytes, expected at least 32")

        record_count, header_length, record_length = unpack_from("<IHH", prefix, 4)
        if header_length <= 32:
            raise HeaderMalformed(f"DBF header length {header_length} leaves no room for fields")

        body = read_exact(self._stream, header_length - 32)
        if len(body) < header_length - 32:
            raise HeaderMalformed("DBF header is truncated")

        fields = []
        offset = 0
        while True:
            if offset >= len(body):
                raise HeaderMalformed("DBF field descriptor terminator not found")
            if body[offset] == TERMINATOR:
                break
            if offset + DESCRIPTOR_LENGTH > len(body):
                raise HeaderMalformed("DBF field descriptor terminator not found")
            fields.append(self._read_descriptor(body[offset:offset + DESCRIPTOR_LENGTH]))
            offset += DESCRIPTOR_LENGTH

        width = 1 + sum(f.length for f in fields)
        if width != record_length:
            raise HeaderMalformed(
                f"DBF record length {record_length} does not match field widths ({width})"
            )

        return AttributeSchema(
            fields=fields,
            record_count=record_count,
            header_length=header_length,
            record_length=record_length,
        )

    def _read_descriptor(self, raw: bytes) -> FieldDescriptor:
        name = raw[:11].split(b"\x00", 1)[0]
        return FieldDescriptor(
            name=self._decode(name).strip(),
            type=chr(raw[11]),
            length=raw[16],
            decimal_count=raw[17],
        )

    def _decode(self, value: bytes) -> str:
        try:
            return value.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise EncodingFailure(f"Cannot decode {value!r} as {self.encoding}: {e.reason}") from e
        except LookupError as e:
            raise EncodingFailure(f"Cannot decode with {self.encoding}: {e}") from e

    def __iter__(self) -> Iterator[AttributeRow]:
        size = self.schema.record_length
        for index in range(self.schema.record_count):
            raw = read_exact(self._stream, size)
            if not raw or raw[0] == EOF_MARKER:
                raise RecordTruncated(
                    f"DBF declares {self.schema.record_count} records, stream ended after {index}"
                )
            if len(raw) < size:
                raise RecordTruncated(f"DBF record {index} is {len(raw)} bytes, expected {size}")
            yield self._parse_row(raw)

    def _parse_row(self, raw: bytes) -> AttributeRow:
        row = []
        offset = 1  # deletion flag
        for field in self.schema.fields:
            row.append(self._coerce(field, raw[offset:offset + field.length]))
            offset += field.length
        return row

    def _coerce(self, field: FieldDescriptor, value: bytes) -> Any:
        if field.type in NUMERIC_TYPES:
            return _number(value, field.decimal_count)
        if field.type == "D":
            return _date(value)
        if field.type == "L":
            return _logical(value)
        text = self._decode(value).strip().rstrip("\x00").strip()
        return text or None

    def properties(self, row: AttributeRow) -> dict[str, Any]:
        """Map a row onto the schema's field names, in field order."""
        return dict(zip(self.names, row))


def _number(value: bytes, decimal_count: int) -> int | float | None:
    value = value.split(b"\x00", 1)[0].strip()
    if not value:
        return None
    try:
        if decimal_count:
            return float(value)
        try:
            return int(value)
        except ValueError:
            return float(value)
    except ValueError:
        # e.g. QGIS writes NULL numbers as all '*'
        return None


def _date(value: bytes) -> date | str | None:
    if not value.replace(b"\x00", b"").replace(b" ", b"").replace(b"0", b""):
        return None
    try:
        return date(int(value[:4]), int(value[4:6]), int(value[6:8]))
    except ValueError:
        return value.decode("ascii", "replace").strip()


def _logical(value: bytes) -> bool | None:
    flag = value[:1]
    if flag and flag in b"YyTt":
        return True
    if flag and flag in b"NnFf":
        return False
    return None
