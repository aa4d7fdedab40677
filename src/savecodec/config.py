from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from importlib.resources import files as resource_files
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .models import CURRENT_FORMAT_VERSION, SUPPORTED_FORMAT_VERSIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CodecSettings:
    """Runtime configuration shared by encoders and decoders."""

    # Envelope revision written on save; any supported revision is readable
    format_version: int = CURRENT_FORMAT_VERSION
    # Raise ChecksumMismatch instead of reporting a diagnostic
    strict_checksum: bool = False
    # Upper bound on records per file, on both encode and decode
    max_record_count: int = 65536
    # Emit a WARNING log line per load diagnostic
    log_diagnostics: bool = True

    def __post_init__(self) -> None:
        if self.format_version not in SUPPORTED_FORMAT_VERSIONS:
            raise ConfigError(
                f"format_version must be one of {list(SUPPORTED_FORMAT_VERSIONS)}, "
                f"got {self.format_version!r}"
            )
        if not isinstance(self.strict_checksum, bool):
            raise ConfigError("strict_checksum must be a boolean")
        if not isinstance(self.max_record_count, int) or self.max_record_count < 0:
            raise ConfigError("max_record_count must be a non-negative integer")
        if not isinstance(self.log_diagnostics, bool):
            raise ConfigError("log_diagnostics must be a boolean")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CodecSettings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown codec settings: {sorted(unknown)}")
        return cls(**data)


DEFAULT_SETTINGS = CodecSettings()


def load_codec_settings(path: Optional[str] = None) -> CodecSettings:
    """Load codec settings from YAML.

    If path is None, loads the embedded default resource at
    savecodec/defaults.yaml.
    """
    if path is None:
        data = resource_files("savecodec").joinpath("defaults.yaml").read_text(encoding="utf-8")
        logger.debug("Loaded embedded codec settings resource")
    else:
        with open(path, "r", encoding="utf-8") as f:
            data = f.read()
        logger.debug("Loaded codec settings from path: %s", path)

    try:
        raw = yaml.safe_load(data) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid settings YAML: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError("Codec settings must be a mapping")
    settings = CodecSettings.from_dict(raw)
    logger.info(
        "Codec settings: format_version=%s strict_checksum=%s max_record_count=%s",
        settings.format_version,
        settings.strict_checksum,
        settings.max_record_count,
    )
    return settings
