from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from .config import CodecSettings
from .envelope import decode_envelope, encode_envelope
from .errors import AmbiguousSlotMapping, EncodeError
from .migration import resolve
from .models import (
    ABSENT,
    Diagnostic,
    DiagnosticCode,
    Identity,
    Record,
    Resolution,
    Unresolvable,
    to_optional,
)
from .registry import ComponentDescriptor, ComponentRegistry, Slot

logger = logging.getLogger(__name__)


class LoadResult(NamedTuple):
    """Values in slot order (``None`` where unavailable) plus load diagnostics."""

    values: Tuple[Any, ...]
    diagnostics: Tuple[Diagnostic, ...]

    @property
    def clean(self) -> bool:
        return not self.diagnostics


class ShapeResolution(NamedTuple):
    outcomes: Tuple[Resolution, ...]
    diagnostics: Tuple[Diagnostic, ...]


class SaveShape:
    """An ordered tuple of component slots that saves and loads together.

    Records are matched to slots by identity, so slot order in a file never
    has to match the declaration order here. Building a shape freezes the
    registry: registration must be complete before any save or load.
    """

    def __init__(
        self,
        registry: ComponentRegistry,
        slots: Sequence[Slot],
        settings: Optional[CodecSettings] = None,
    ) -> None:
        self.registry = registry.freeze()
        self.settings = settings or registry.settings
        descriptors: List[ComponentDescriptor] = []
        slot_of: Dict[Identity, int] = {}
        for index, slot in enumerate(slots):
            descriptor = registry.resolve_slot(slot)
            if descriptor.identity in slot_of:
                raise AmbiguousSlotMapping(
                    f"Slots {slot_of[descriptor.identity]} and {index} both map to "
                    f"component {descriptor.label}"
                )
            slot_of[descriptor.identity] = index
            descriptors.append(descriptor)
        self.descriptors: Tuple[ComponentDescriptor, ...] = tuple(descriptors)
        self._slot_of = MappingProxyType(slot_of)

    def __len__(self) -> int:
        return len(self.descriptors)

    def __repr__(self) -> str:
        labels = ", ".join(d.label for d in self.descriptors)
        return f"SaveShape({labels})"

    def slot_of(self, identity: Identity) -> Optional[int]:
        return self._slot_of.get(identity)

    # Encoding

    def to_records(self, values: Sequence[Any]) -> List[Record]:
        """One record per non-None value, each at its component's current version."""
        if len(values) != len(self.descriptors):
            raise EncodeError(
                f"Expected {len(self.descriptors)} values for {self!r}, got {len(values)}"
            )
        records: List[Record] = []
        for index, (descriptor, value) in enumerate(zip(self.descriptors, values)):
            if value is None:
                continue
            try:
                payload = descriptor.encode(value)
            except Exception as e:
                raise EncodeError(f"Slot {index} ({descriptor.label}) failed to encode: {e}") from e
            if not isinstance(payload, (bytes, bytearray)):
                raise EncodeError(
                    f"Slot {index} ({descriptor.label}) encoder returned "
                    f"{type(payload).__name__}, expected bytes"
                )
            records.append(Record(descriptor.identity, descriptor.current_version, bytes(payload)))
        return records

    def encode(self, values: Sequence[Any]) -> bytes:
        """Serialize ``values`` (one per slot, ``None`` for absent) to save bytes."""
        return encode_envelope(self.to_records(values), settings=self.settings)

    # Decoding

    def resolve(self, data: bytes) -> ShapeResolution:
        """Resolve every slot to Present, Absent or Unresolvable.

        Whole-file problems (unsupported format, unreadable header) raise;
        everything else is isolated to the slot it affects and reported as a
        diagnostic.
        """
        envelope = decode_envelope(data, self.settings)
        outcomes: List[Resolution] = [ABSENT] * len(self.descriptors)
        diagnostics: List[Diagnostic] = []
        claimed = set()

        for record in envelope.records:
            index = self._slot_of.get(record.identity)
            if index is None:
                # Not requested by this shape, or removed from the application
                logger.debug("Skipping record for identity 0x%08x", record.identity)
                continue
            if index in claimed:
                diagnostics.append(
                    Diagnostic(
                        DiagnosticCode.DUPLICATE_RECORD,
                        identity=record.identity,
                        detail=f"Extra record for {self.descriptors[index].label} ignored",
                    )
                )
                continue
            claimed.add(index)
            outcome = resolve(record, self.descriptors[index])
            outcomes[index] = outcome
            if isinstance(outcome, Unresolvable):
                diagnostics.append(
                    Diagnostic(outcome.reason, slot=index, identity=record.identity, detail=outcome.detail)
                )

        for error in envelope.errors:
            index = self._slot_of.get(error.identity) if error.identity is not None else None
            if index is not None and index not in claimed:
                claimed.add(index)
                outcomes[index] = Unresolvable(DiagnosticCode.TRUNCATED_RECORD, str(error))
            else:
                index = None
            diagnostics.append(
                Diagnostic(
                    DiagnosticCode.TRUNCATED_RECORD,
                    slot=index,
                    identity=error.identity,
                    detail=str(error),
                )
            )

        if envelope.checksum_ok is False:
            diagnostics.append(
                Diagnostic(
                    DiagnosticCode.CHECKSUM_MISMATCH,
                    detail="Record region does not match the header checksum",
                )
            )
        if envelope.trailing_bytes:
            diagnostics.append(
                Diagnostic(
                    DiagnosticCode.TRAILING_DATA,
                    detail=f"{envelope.trailing_bytes} bytes after the last record ignored",
                )
            )

        if self.settings.log_diagnostics:
            for diagnostic in diagnostics:
                logger.warning("Save load diagnostic: %s", diagnostic)
        return ShapeResolution(tuple(outcomes), tuple(diagnostics))

    def decode(self, data: bytes) -> LoadResult:
        """Load ``data`` into a tuple of values in slot order plus diagnostics."""
        resolution = self.resolve(data)
        return LoadResult(tuple(to_optional(o) for o in resolution.outcomes), resolution.diagnostics)


def encode_tuple(
    registry: ComponentRegistry,
    values: Sequence[Any],
    slots: Optional[Sequence[Slot]] = None,
) -> bytes:
    """Encode a tuple of optional component values.

    Without ``slots`` each non-None value is matched to its component by
    type; None values need no slot since they are never written.
    """
    if slots is None:
        present = [v for v in values if v is not None]
        slots = [registry.resolve_value(v) for v in present]
        values = present
    return SaveShape(registry, slots).encode(values)


def decode_tuple(registry: ComponentRegistry, data: bytes, slots: Sequence[Slot]) -> LoadResult:
    return SaveShape(registry, slots).decode(data)
