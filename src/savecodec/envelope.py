"""Binary container for save files.

Layout, all integers little-endian::

    header (format 1):  format_version:u16  record_count:u32
    header (format 2):  format_version:u16  record_count:u32  checksum:u32
    record:             identity:u32  version:u32  payload_length:u32  payload

The format 2 checksum is the CRC-32 of the record region. The codec knows
nothing about the registry: unknown identities and future component versions
pass through untouched.
"""

from __future__ import annotations

import logging
import struct
import zlib
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .config import DEFAULT_SETTINGS, CodecSettings
from .errors import (
    ChecksumMismatch,
    EncodeError,
    RecordLimitExceeded,
    TruncatedHeader,
    TruncatedRecord,
    UnsupportedFormatVersion,
)
from .models import (
    CURRENT_FORMAT_VERSION,
    FORMAT_V1,
    SUPPORTED_FORMAT_VERSIONS,
    UINT32_MAX,
    FileHeader,
    Record,
)

logger = logging.getLogger(__name__)

_FORMAT_VERSION = struct.Struct("<H")
_HEADER_V1 = struct.Struct("<HI")
_HEADER_V2 = struct.Struct("<HII")
_RECORD_HEADER = struct.Struct("<III")


@dataclass(frozen=True)
class DecodedEnvelope:
    """Header plus the records that could be framed.

    ``errors`` lists truncated records by position; ``records`` is the prefix
    parsed before the first of them. ``checksum_ok`` is None when the format
    carries no checksum or the file was truncated.
    """

    header: FileHeader
    records: Tuple[Record, ...]
    errors: Tuple[TruncatedRecord, ...] = ()
    checksum_ok: Optional[bool] = None
    trailing_bytes: int = 0


def header_size(format_version: int) -> int:
    return _HEADER_V1.size if format_version == FORMAT_V1 else _HEADER_V2.size


def _check_record(record: Record, position: int) -> None:
    for what, value in (("identity", record.identity), ("version", record.version)):
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= UINT32_MAX:
            raise EncodeError(f"Record {position} {what} is not a uint32: {value!r}")
    if not isinstance(record.payload, (bytes, bytearray, memoryview)):
        raise EncodeError(
            f"Record {position} payload must be bytes, got {type(record.payload).__name__}"
        )
    if len(record.payload) > UINT32_MAX:
        raise EncodeError(f"Record {position} payload exceeds 4 GiB")


def encode_envelope(
    records: Iterable[Record],
    format_version: Optional[int] = None,
    settings: Optional[CodecSettings] = None,
) -> bytes:
    """Serialize records behind a file header, preserving their order."""
    settings = settings or DEFAULT_SETTINGS
    if format_version is None:
        format_version = settings.format_version
    if format_version not in SUPPORTED_FORMAT_VERSIONS:
        raise EncodeError(f"Cannot write envelope format version {format_version}")

    body = bytearray()
    count = 0
    for position, record in enumerate(records):
        _check_record(record, position)
        body += _RECORD_HEADER.pack(record.identity, record.version, len(record.payload))
        body += record.payload
        count += 1
    if count > settings.max_record_count:
        raise EncodeError(
            f"Save holds {count} records, more than the limit of {settings.max_record_count}"
        )

    if format_version == FORMAT_V1:
        header = _HEADER_V1.pack(format_version, count)
    else:
        header = _HEADER_V2.pack(format_version, count, zlib.crc32(body) & UINT32_MAX)
    logger.debug(
        "Encoded envelope v%d with %d records (%d bytes)",
        format_version,
        count,
        len(header) + len(body),
    )
    return bytes(header) + bytes(body)


def read_header(data: bytes) -> FileHeader:
    """Parse and validate the file header. Raises on whole-file problems."""
    if len(data) < _FORMAT_VERSION.size:
        raise TruncatedHeader(f"Save data is {len(data)} bytes, too short for a header")
    (format_version,) = _FORMAT_VERSION.unpack_from(data, 0)
    if format_version not in SUPPORTED_FORMAT_VERSIONS:
        raise UnsupportedFormatVersion(format_version, CURRENT_FORMAT_VERSION)

    if format_version == FORMAT_V1:
        if len(data) < _HEADER_V1.size:
            raise TruncatedHeader(f"Format 1 header needs {_HEADER_V1.size} bytes, got {len(data)}")
        _, record_count = _HEADER_V1.unpack_from(data, 0)
        return FileHeader(format_version, record_count)

    if len(data) < _HEADER_V2.size:
        raise TruncatedHeader(f"Format 2 header needs {_HEADER_V2.size} bytes, got {len(data)}")
    _, record_count, checksum = _HEADER_V2.unpack_from(data, 0)
    return FileHeader(format_version, record_count, checksum)


def decode_envelope(data: bytes, settings: Optional[CodecSettings] = None) -> DecodedEnvelope:
    """Split save data into its header and raw records.

    Raises UnsupportedFormatVersion, TruncatedHeader or RecordLimitExceeded
    for whole-file problems, and ChecksumMismatch in strict mode. A record
    that runs past the end of the buffer is reported in ``errors`` and ends
    parsing; the records before it are returned.
    """
    settings = settings or DEFAULT_SETTINGS
    data = bytes(data)
    header = read_header(data)
    if header.record_count > settings.max_record_count:
        raise RecordLimitExceeded(
            f"Header announces {header.record_count} records, limit is {settings.max_record_count}"
        )

    start = header_size(header.format_version)
    offset = start
    records: List[Record] = []
    errors: List[TruncatedRecord] = []
    for position in range(header.record_count):
        remaining = len(data) - offset
        if remaining < _RECORD_HEADER.size:
            errors.append(
                TruncatedRecord(
                    position,
                    f"Record {position} header needs {_RECORD_HEADER.size} bytes, {remaining} left",
                )
            )
            break
        identity, version, length = _RECORD_HEADER.unpack_from(data, offset)
        offset += _RECORD_HEADER.size
        remaining -= _RECORD_HEADER.size
        if length > remaining:
            errors.append(
                TruncatedRecord(
                    position,
                    f"Record {position} payload needs {length} bytes, {remaining} left",
                    identity=identity,
                    version=version,
                )
            )
            break
        records.append(Record(identity, version, data[offset : offset + length]))
        offset += length

    checksum_ok: Optional[bool] = None
    trailing = 0
    if not errors:
        trailing = len(data) - offset
        if header.checksum is not None:
            actual = zlib.crc32(data[start:offset]) & UINT32_MAX
            checksum_ok = actual == header.checksum
            if not checksum_ok and settings.strict_checksum:
                raise ChecksumMismatch(header.checksum, actual)

    logger.debug(
        "Decoded envelope v%d: %d/%d records, %d errors",
        header.format_version,
        len(records),
        header.record_count,
        len(errors),
    )
    return DecodedEnvelope(
        header=header,
        records=tuple(records),
        errors=tuple(errors),
        checksum_ok=checksum_ok,
        trailing_bytes=trailing,
    )
