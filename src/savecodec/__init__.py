"""Versioned, component-based save-file codec.

This package provides:
- A component registry mapping identities and types to encoders, per-version
  decoders and upgrade chains
- A compact binary envelope (header plus independently framed records)
- A migration engine that brings old component payloads up to date
- Save shapes that load a tuple of optional components, isolating failures
  to the component they affect

Design goals:
- Forward compatibility: components added later load as None from old files
- Migration: old component layouts are upgraded step by step, never guessed
- Isolation: one corrupt or future-version component never hides the others
- Purity: save and load work on bytes; storage belongs to the host
"""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("savecodec")
except PackageNotFoundError:  # pragma: no cover - during tests without packaging
    __version__ = "0.0.0"

from .api import DEFAULT_REGISTRY, load, register_component, save
from .assembler import LoadResult, SaveShape, ShapeResolution, decode_tuple, encode_tuple
from .config import DEFAULT_SETTINGS, CodecSettings, load_codec_settings
from .envelope import DecodedEnvelope, decode_envelope, encode_envelope
from .errors import (
    AmbiguousSlotMapping,
    ChecksumMismatch,
    ComponentError,
    ConfigError,
    CorruptPayload,
    DuplicateIdentity,
    EncodeError,
    EnvelopeError,
    FutureVersion,
    IncompleteMigrationChain,
    RecordLimitExceeded,
    RegistrationError,
    RegistryFrozen,
    SaveCodecError,
    SaveFileNotFound,
    TruncatedHeader,
    TruncatedRecord,
    UnknownComponent,
    UnsupportedFormatVersion,
)
from .migration import migrate, resolve
from .models import (
    ABSENT,
    CURRENT_FORMAT_VERSION,
    Absent,
    Diagnostic,
    DiagnosticCode,
    FileHeader,
    Present,
    Record,
    Unresolvable,
    identity_for_name,
)
from .registry import ComponentDescriptor, ComponentRegistry
from .storage import read_save_file, write_save_file
from .strategies import Strategy, json_strategy, pydantic_strategy, struct_strategy

__all__ = [
    "__version__",
    "DEFAULT_REGISTRY",
    "register_component",
    "save",
    "load",
    "LoadResult",
    "SaveShape",
    "ShapeResolution",
    "encode_tuple",
    "decode_tuple",
    "CodecSettings",
    "DEFAULT_SETTINGS",
    "load_codec_settings",
    "DecodedEnvelope",
    "encode_envelope",
    "decode_envelope",
    "migrate",
    "resolve",
    "ABSENT",
    "CURRENT_FORMAT_VERSION",
    "Absent",
    "Present",
    "Unresolvable",
    "Diagnostic",
    "DiagnosticCode",
    "FileHeader",
    "Record",
    "identity_for_name",
    "ComponentDescriptor",
    "ComponentRegistry",
    "read_save_file",
    "write_save_file",
    "Strategy",
    "json_strategy",
    "pydantic_strategy",
    "struct_strategy",
    "SaveCodecError",
    "EnvelopeError",
    "UnsupportedFormatVersion",
    "TruncatedHeader",
    "TruncatedRecord",
    "RecordLimitExceeded",
    "ChecksumMismatch",
    "ComponentError",
    "CorruptPayload",
    "FutureVersion",
    "RegistrationError",
    "DuplicateIdentity",
    "IncompleteMigrationChain",
    "AmbiguousSlotMapping",
    "UnknownComponent",
    "RegistryFrozen",
    "ConfigError",
    "EncodeError",
    "SaveFileNotFound",
]
