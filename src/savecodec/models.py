from __future__ import annotations

import zlib
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

# uint32 limits shared by identities, versions and payload lengths
UINT32_MAX = 0xFFFFFFFF

# Envelope revisions. Format 2 adds a CRC-32 of the record region to the header.
FORMAT_V1 = 1
FORMAT_V2 = 2
CURRENT_FORMAT_VERSION = FORMAT_V2
SUPPORTED_FORMAT_VERSIONS = (FORMAT_V1, FORMAT_V2)

Identity = int
ComponentKey = Union[int, str]


def identity_for_name(name: str) -> Identity:
    """Intern a component name to its stable uint32 identity (CRC-32 of UTF-8)."""
    if not isinstance(name, str) or not name:
        raise ValueError("component name must be a non-empty string")
    return zlib.crc32(name.encode("utf-8")) & UINT32_MAX


@dataclass(frozen=True)
class Record:
    """One framed component inside a save file."""

    identity: Identity
    version: int
    payload: bytes

    @property
    def payload_length(self) -> int:
        return len(self.payload)


@dataclass(frozen=True)
class FileHeader:
    format_version: int
    record_count: int
    checksum: Optional[int] = None


class DiagnosticCode(str, Enum):
    """Why a component or file was only partially readable."""

    TRUNCATED_RECORD = "truncated_record"
    CORRUPT_PAYLOAD = "corrupt_payload"
    FUTURE_VERSION = "future_version"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    DUPLICATE_RECORD = "duplicate_record"
    TRAILING_DATA = "trailing_data"


@dataclass(frozen=True)
class Present:
    value: Any

    @property
    def is_present(self) -> bool:
        return True


@dataclass(frozen=True)
class Absent:
    """No record for the component was in the file, or it was removed."""

    @property
    def is_present(self) -> bool:
        return False


@dataclass(frozen=True)
class Unresolvable:
    reason: DiagnosticCode
    detail: str = ""

    @property
    def is_present(self) -> bool:
        return False


Resolution = Union[Present, Absent, Unresolvable]

ABSENT = Absent()


def to_optional(resolution: Resolution) -> Any:
    """Collapse a resolution to the value or ``None``."""
    if isinstance(resolution, Present):
        return resolution.value
    return None


@dataclass(frozen=True)
class Diagnostic:
    """A load problem reported alongside the resolved tuple.

    ``slot`` is the tuple position the problem affected, or ``None`` for
    file-level problems that no slot owns.
    """

    code: DiagnosticCode
    slot: Optional[int] = None
    identity: Optional[Identity] = None
    detail: str = ""

    def __str__(self) -> str:
        where = f"slot {self.slot}" if self.slot is not None else "file"
        ident = f" identity=0x{self.identity:08x}" if self.identity is not None else ""
        return f"{self.code.value} ({where}{ident}): {self.detail}"
