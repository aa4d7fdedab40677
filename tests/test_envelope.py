import struct
import zlib

import pytest

from savecodec import (
    ChecksumMismatch,
    CodecSettings,
    EncodeError,
    Record,
    RecordLimitExceeded,
    TruncatedHeader,
    UnsupportedFormatVersion,
    decode_envelope,
    encode_envelope,
)
from savecodec.envelope import header_size, read_header


def sample_records():
    return [
        Record(1, 0, b"alpha"),
        Record(0xFFFFFFFF, 7, b""),
        Record(2, 3, bytes(range(40))),
    ]


def test_format_1_byte_layout():
    data = encode_envelope([Record(5, 2, b"hi")], format_version=1)
    assert data == struct.pack("<HI", 1, 1) + struct.pack("<III", 5, 2, 2) + b"hi"


def test_format_2_header_carries_crc_of_records():
    data = encode_envelope([Record(5, 2, b"hi")], format_version=2)
    body = struct.pack("<III", 5, 2, 2) + b"hi"
    assert data == struct.pack("<HII", 2, 1, zlib.crc32(body)) + body


def test_decode_preserves_order_and_content():
    records = sample_records()
    envelope = decode_envelope(encode_envelope(records))
    assert envelope.header.format_version == 2
    assert envelope.header.record_count == 3
    assert list(envelope.records) == records
    assert envelope.errors == ()
    assert envelope.checksum_ok is True
    assert envelope.trailing_bytes == 0


def test_format_1_files_remain_readable():
    envelope = decode_envelope(encode_envelope(sample_records(), format_version=1))
    assert envelope.header.checksum is None
    assert envelope.checksum_ok is None
    assert len(envelope.records) == 3


def test_empty_save():
    envelope = decode_envelope(encode_envelope([]))
    assert envelope.header.record_count == 0
    assert envelope.records == ()


def test_newer_format_version_is_fatal():
    data = struct.pack("<HII", 3, 0, 0)
    with pytest.raises(UnsupportedFormatVersion) as excinfo:
        decode_envelope(data)
    assert excinfo.value.format_version == 3


def test_format_version_zero_is_unsupported():
    with pytest.raises(UnsupportedFormatVersion):
        decode_envelope(struct.pack("<HI", 0, 0))


@pytest.mark.parametrize("data", [b"", b"\x02", struct.pack("<HI", 2, 1), struct.pack("<H", 1) + b"\x00"])
def test_short_header_is_fatal(data):
    with pytest.raises(TruncatedHeader):
        decode_envelope(data)


def test_truncated_payload_keeps_prefix():
    data = encode_envelope(sample_records())
    # Cut inside the third record's payload
    cut = data[:-10]
    envelope = decode_envelope(cut)
    assert [r.identity for r in envelope.records] == [1, 0xFFFFFFFF]
    assert len(envelope.errors) == 1
    error = envelope.errors[0]
    assert error.position == 2
    assert error.identity == 2
    assert error.version == 3
    # Checksum is not judged on a truncated file
    assert envelope.checksum_ok is None


def test_truncated_record_header_has_no_identity():
    data = encode_envelope(sample_records()[:1])
    # Claim two records but only provide one plus a partial record header
    header = read_header(data)
    start = header_size(header.format_version)
    forged = struct.pack("<HII", 2, 2, header.checksum) + data[start:] + b"\x01\x00"
    envelope = decode_envelope(forged)
    assert len(envelope.records) == 1
    assert envelope.errors[0].position == 1
    assert envelope.errors[0].identity is None


def test_checksum_mismatch_is_reported_not_fatal():
    data = bytearray(encode_envelope([Record(1, 0, b"abc")]))
    data[-1] ^= 0xFF
    envelope = decode_envelope(bytes(data))
    assert envelope.checksum_ok is False
    assert envelope.records[0].payload != b"abc"


def test_checksum_mismatch_is_fatal_in_strict_mode():
    data = bytearray(encode_envelope([Record(1, 0, b"abc")]))
    data[-1] ^= 0xFF
    with pytest.raises(ChecksumMismatch):
        decode_envelope(bytes(data), CodecSettings(strict_checksum=True))


def test_trailing_bytes_are_counted():
    data = encode_envelope([Record(1, 0, b"abc")]) + b"junk"
    envelope = decode_envelope(data)
    assert envelope.trailing_bytes == 4
    assert envelope.checksum_ok is True


def test_record_limit_on_decode():
    data = struct.pack("<HI", 1, 10)
    with pytest.raises(RecordLimitExceeded):
        decode_envelope(data, CodecSettings(max_record_count=5))


def test_record_limit_on_encode():
    with pytest.raises(EncodeError):
        encode_envelope(sample_records(), settings=CodecSettings(max_record_count=2))


@pytest.mark.parametrize(
    "record",
    [Record(-1, 0, b""), Record(1, 2**32, b""), Record(1, 0, "text")],
)
def test_invalid_records_fail_encoding(record):
    with pytest.raises(EncodeError):
        encode_envelope([record])


def test_unknown_format_version_on_encode():
    with pytest.raises(EncodeError):
        encode_envelope([], format_version=9)
