from __future__ import annotations

from typing import Optional


class SaveCodecError(Exception):
    """Base exception for save codec errors."""


# Whole-file envelope errors


class EnvelopeError(SaveCodecError):
    """Raised when the save container itself cannot be read."""


class UnsupportedFormatVersion(EnvelopeError):
    """Raised when the envelope header is newer than this codec understands."""

    def __init__(self, format_version: int, supported: int) -> None:
        super().__init__(
            f"Envelope format version {format_version} is not supported (max {supported})."
        )
        self.format_version = format_version
        self.supported = supported


class TruncatedHeader(EnvelopeError):
    """Raised when the buffer is too short to hold a file header."""


class RecordLimitExceeded(EnvelopeError):
    """Raised when a header announces more records than the configured limit."""


class ChecksumMismatch(EnvelopeError):
    """Raised in strict mode when the stored checksum does not match the records."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Checksum mismatch: header 0x{expected:08x}, computed 0x{actual:08x}")
        self.expected = expected
        self.actual = actual


class TruncatedRecord(EnvelopeError):
    """A record whose framing runs past the end of the buffer.

    Never raised out of ``decode_envelope``; carried in its error list so the
    records parsed before it remain usable.
    """

    def __init__(
        self,
        position: int,
        message: str,
        identity: Optional[int] = None,
        version: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.position = position
        self.identity = identity
        self.version = version


# Per-component errors


class ComponentError(SaveCodecError):
    """Raised when a single component record cannot be resolved."""


class CorruptPayload(ComponentError):
    """Raised when a payload fails to decode or migrate."""


class FutureVersion(ComponentError):
    """Raised when a record was written by a newer component version."""


# Programming errors at startup


class RegistrationError(SaveCodecError):
    """Raised when the component registry is configured incorrectly."""


class DuplicateIdentity(RegistrationError):
    """Raised when an identity, name or type is registered twice."""


class IncompleteMigrationChain(RegistrationError):
    """Raised when decoders or upgrade steps do not cover every version."""


class AmbiguousSlotMapping(RegistrationError):
    """Raised when two slots of one save shape map to the same component."""


class UnknownComponent(RegistrationError):
    """Raised when a slot or value does not map to any registered component."""


class RegistryFrozen(RegistrationError):
    """Raised when registering after the registry was frozen."""


class ConfigError(SaveCodecError):
    """Raised when codec settings are invalid."""


class EncodeError(SaveCodecError):
    """Raised when a save cannot be encoded. Encoding never partially succeeds."""


class SaveFileNotFound(SaveCodecError):
    """Raised when a save file to read does not exist."""
