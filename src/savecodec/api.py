"""Process-wide convenience surface over a default registry.

Hosts register their components once at startup, then call ``save`` and
``load``. The first save or load freezes the default registry.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from .assembler import LoadResult, decode_tuple, encode_tuple
from .registry import (
    ComponentDescriptor,
    ComponentRegistry,
    DecoderSpec,
    Encoder,
    Slot,
    UpgradeSpec,
)
from .models import ComponentKey

# A default, module-level registry for convenience
DEFAULT_REGISTRY = ComponentRegistry()


def _registry(registry: Optional[ComponentRegistry]) -> ComponentRegistry:
    return registry if registry is not None else DEFAULT_REGISTRY


def register_component(
    identity: ComponentKey,
    current_version: int,
    decoders_by_version: DecoderSpec,
    upgrade_chain: UpgradeSpec,
    encoder: Encoder,
    component_type: Optional[type] = None,
    registry: Optional[ComponentRegistry] = None,
) -> ComponentDescriptor:
    """Register a component on the default registry (or ``registry``)."""
    return _registry(registry).register(
        identity,
        current_version,
        decoders_by_version,
        upgrade_chain,
        encoder,
        component_type=component_type,
    )


def save(
    components_present: Sequence[Any],
    slots: Optional[Sequence[Slot]] = None,
    registry: Optional[ComponentRegistry] = None,
) -> bytes:
    """Encode a tuple of optional component values. Pure; no I/O."""
    return encode_tuple(_registry(registry), components_present, slots)


def load(
    data: bytes,
    slots: Sequence[Slot],
    registry: Optional[ComponentRegistry] = None,
) -> LoadResult:
    """Decode save bytes into one optional value per slot plus diagnostics. Pure; no I/O."""
    return decode_tuple(_registry(registry), data, slots)
