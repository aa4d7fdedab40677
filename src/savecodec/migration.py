from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import ComponentError, CorruptPayload, FutureVersion
from .models import ABSENT, DiagnosticCode, Present, Record, Resolution, Unresolvable
from .registry import ComponentDescriptor

logger = logging.getLogger(__name__)


def migrate(value: Any, from_version: int, descriptor: ComponentDescriptor) -> Any:
    """Fold the upgrade chain over ``value`` from ``from_version`` to current.

    Raises FutureVersion when there is no forward path, CorruptPayload when
    an upgrade step fails.
    """
    if from_version > descriptor.current_version:
        raise FutureVersion(
            f"{descriptor.label} was written at version {from_version}, "
            f"newest known is {descriptor.current_version}"
        )
    version = from_version
    for upgrade in descriptor.upgrades_from(from_version):
        logger.debug("Upgrading %s v%d -> v%d", descriptor.label, version, version + 1)
        try:
            value = upgrade(value)
        except Exception as e:
            raise CorruptPayload(
                f"{descriptor.label} upgrade v{version}->v{version + 1} failed: {e}"
            ) from e
        version += 1
    return value


def decode_payload(record: Record, descriptor: ComponentDescriptor) -> Any:
    """Decode a record with the decoder of its stored version and bring it to current."""
    if record.version > descriptor.current_version:
        raise FutureVersion(
            f"{descriptor.label} was written at version {record.version}, "
            f"newest known is {descriptor.current_version}"
        )
    try:
        value = descriptor.decoder_for(record.version)(record.payload)
    except Exception as e:
        raise CorruptPayload(
            f"{descriptor.label} payload at version {record.version} failed to decode: {e}"
        ) from e
    return migrate(value, record.version, descriptor)


def resolve(record: Record, descriptor: Optional[ComponentDescriptor]) -> Resolution:
    """Resolve one record against its descriptor without raising.

    A missing descriptor means the component was removed from the
    application, which resolves to Absent rather than an error.
    """
    if descriptor is None:
        return ABSENT
    if record.identity != descriptor.identity:
        raise ValueError(
            f"Record identity 0x{record.identity:08x} does not match {descriptor.label}"
        )
    try:
        return Present(decode_payload(record, descriptor))
    except FutureVersion as e:
        return Unresolvable(DiagnosticCode.FUTURE_VERSION, str(e))
    except ComponentError as e:
        return Unresolvable(DiagnosticCode.CORRUPT_PAYLOAD, str(e))
