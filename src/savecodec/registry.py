from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
    Union,
)

from .config import DEFAULT_SETTINGS, CodecSettings
from .errors import (
    DuplicateIdentity,
    IncompleteMigrationChain,
    RegistrationError,
    RegistryFrozen,
    UnknownComponent,
)
from .models import UINT32_MAX, ComponentKey, Identity, identity_for_name
from .strategies import pydantic_strategy

logger = logging.getLogger(__name__)

Decoder = Callable[[bytes], Any]
VersionedDecoder = Callable[[bytes, int], Any]
Upgrade = Callable[[Any], Any]
Encoder = Callable[[Any], bytes]

DecoderSpec = Union[Mapping[int, Decoder], VersionedDecoder]
UpgradeSpec = Union[Sequence[Upgrade], Mapping[int, Upgrade], None]

# Anything a save shape may name a component by
Slot = Union[type, str, int, "ComponentDescriptor"]


@dataclass(frozen=True)
class ComponentDescriptor:
    """Registry entry for one component.

    ``decoders[v]`` reads a payload written at version ``v``;
    ``upgrade_chain[v]`` turns a version ``v`` value into a version ``v + 1``
    value. Both are indexed by version and have no gaps.
    """

    identity: Identity
    current_version: int
    decoders: Tuple[Decoder, ...]
    upgrade_chain: Tuple[Upgrade, ...]
    encoder: Encoder
    name: Optional[str] = None
    component_type: Optional[type] = None

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        if self.component_type is not None:
            return self.component_type.__name__
        return f"0x{self.identity:08x}"

    def decoder_for(self, version: int) -> Decoder:
        return self.decoders[version]

    def upgrades_from(self, version: int) -> Tuple[Upgrade, ...]:
        """Upgrade steps taking a ``version`` value to the current version, in order."""
        return self.upgrade_chain[version:]

    def encode(self, value: Any) -> bytes:
        return self.encoder(value)


def _bind_version(fn: VersionedDecoder, version: int) -> Decoder:
    def decode(payload: bytes) -> Any:
        return fn(payload, version)

    return decode


def _check_uint32(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise RegistrationError(f"{what} must be an integer, got {value!r}")
    if value < 0 or value > UINT32_MAX:
        raise RegistrationError(f"{what} must fit in an unsigned 32-bit integer, got {value}")
    return value


def _build_decoders(label: str, current_version: int, decoders: DecoderSpec) -> Tuple[Decoder, ...]:
    if isinstance(decoders, Mapping):
        missing = [v for v in range(current_version + 1) if v not in decoders]
        if missing:
            raise IncompleteMigrationChain(
                f"Component {label} has no decoder for versions {missing}"
            )
        extra = sorted(str(v) for v in decoders if not isinstance(v, int) or v > current_version or v < 0)
        if extra:
            raise RegistrationError(
                f"Component {label} has decoders outside 0..{current_version}: {extra}"
            )
        table = tuple(decoders[v] for v in range(current_version + 1))
    elif callable(decoders):
        table = tuple(_bind_version(decoders, v) for v in range(current_version + 1))
    else:
        raise RegistrationError(
            f"Component {label} decoders must be a mapping or a callable(payload, version)"
        )
    for fn in table:
        if not callable(fn):
            raise RegistrationError(f"Component {label} has a non-callable decoder: {fn!r}")
    return table


def _build_upgrade_chain(label: str, current_version: int, chain: UpgradeSpec) -> Tuple[Upgrade, ...]:
    if chain is None:
        steps: Dict[Any, Upgrade] = {}
    elif isinstance(chain, Mapping):
        steps = dict(chain)
    elif isinstance(chain, (list, tuple)):
        steps = dict(enumerate(chain))
    else:
        raise RegistrationError(
            f"Component {label} upgrade_chain must be a sequence or a mapping of source version"
        )

    gaps = [v for v in range(current_version) if v not in steps]
    if gaps:
        missing = ", ".join(f"v{v}->v{v + 1}" for v in gaps)
        raise IncompleteMigrationChain(
            f"Component {label} at version {current_version} is missing upgrade steps: {missing}"
        )
    extra = sorted(str(v) for v in steps if not isinstance(v, int) or v < 0 or v >= current_version)
    if extra:
        raise IncompleteMigrationChain(
            f"Component {label} has upgrade steps beyond version {current_version}: {extra}"
        )
    table = tuple(steps[v] for v in range(current_version))
    for fn in table:
        if not callable(fn):
            raise RegistrationError(f"Component {label} has a non-callable upgrade step: {fn!r}")
    return table


class ComponentRegistry:
    """Maps component identities, names and types to their descriptors.

    Registration happens once at startup. ``freeze()`` ends that phase; from
    then on the tables are read-only and safe to share between threads.
    """

    def __init__(self, settings: Optional[CodecSettings] = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS
        self._by_identity: Mapping[Identity, ComponentDescriptor] = {}
        self._by_name: Mapping[str, ComponentDescriptor] = {}
        self._by_type: Mapping[type, ComponentDescriptor] = {}
        self._frozen = False

    # Registration

    def register(
        self,
        identity: ComponentKey,
        current_version: int,
        decoders: DecoderSpec,
        upgrade_chain: UpgradeSpec,
        encoder: Encoder,
        component_type: Optional[type] = None,
    ) -> ComponentDescriptor:
        """Register a component and return its descriptor.

        ``identity`` is a uint32 or a name interned with ``identity_for_name``.
        Raises DuplicateIdentity, IncompleteMigrationChain or RegistrationError.
        """
        if self._frozen:
            raise RegistryFrozen("Components must be registered before the registry is frozen")

        name: Optional[str] = None
        if isinstance(identity, str):
            if not identity:
                raise RegistrationError("Component name must be a non-empty string")
            name = identity
            ident = identity_for_name(name)
        else:
            ident = _check_uint32(identity, "Component identity")
        _check_uint32(current_version, "current_version")
        label = name or f"0x{ident:08x}"

        if not callable(encoder):
            raise RegistrationError(f"Component {label} encoder must be callable")
        if component_type is not None and not isinstance(component_type, type):
            raise RegistrationError(f"Component {label} component_type must be a class")

        existing = self._by_identity.get(ident)
        if existing is not None:
            if name is not None and existing.name not in (None, name):
                raise DuplicateIdentity(
                    f"Component name {name!r} collides with {existing.name!r} (identity 0x{ident:08x})"
                )
            raise DuplicateIdentity(f"Component identity {label} is already registered")
        if component_type is not None and component_type in self._by_type:
            raise DuplicateIdentity(
                f"Type {component_type.__name__} is already bound to component "
                f"{self._by_type[component_type].label}"
            )

        descriptor = ComponentDescriptor(
            identity=ident,
            current_version=current_version,
            decoders=_build_decoders(label, current_version, decoders),
            upgrade_chain=_build_upgrade_chain(label, current_version, upgrade_chain),
            encoder=encoder,
            name=name,
            component_type=component_type,
        )
        self._by_identity[ident] = descriptor  # type: ignore[index]
        if name is not None:
            self._by_name[name] = descriptor  # type: ignore[index]
        if component_type is not None:
            self._by_type[component_type] = descriptor  # type: ignore[index]
        logger.info(
            "Registered component %s (identity=0x%08x, version=%d)",
            descriptor.label,
            ident,
            current_version,
        )
        return descriptor

    def register_model(
        self,
        identity: ComponentKey,
        models_by_version: Mapping[int, Type[Any]],
        upgrade_chain: UpgradeSpec = None,
    ) -> ComponentDescriptor:
        """Register a component whose versions are pydantic models.

        The highest version is the current one and its model becomes the slot
        type, so values of that model are found by type on save.
        """
        if not models_by_version:
            raise RegistrationError("models_by_version must not be empty")
        current_version = max(models_by_version)
        decoders = {v: pydantic_strategy(model).decode for v, model in models_by_version.items()}
        current_model = models_by_version[current_version]
        return self.register(
            identity,
            current_version,
            decoders,
            upgrade_chain,
            pydantic_strategy(current_model).encode,
            component_type=current_model,
        )

    def freeze(self) -> "ComponentRegistry":
        """End registration. Idempotent."""
        if not self._frozen:
            self._by_identity = MappingProxyType(dict(self._by_identity))
            self._by_name = MappingProxyType(dict(self._by_name))
            self._by_type = MappingProxyType(dict(self._by_type))
            self._frozen = True
            logger.info("Component registry frozen with %d components", len(self._by_identity))
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    # Lookup

    def lookup(self, identity: Identity) -> Optional[ComponentDescriptor]:
        return self._by_identity.get(identity)

    def current_version_of(self, identity: Identity) -> Optional[int]:
        descriptor = self._by_identity.get(identity)
        return descriptor.current_version if descriptor is not None else None

    def descriptor_for_type(self, cls: type) -> Optional[ComponentDescriptor]:
        """Descriptor bound to ``cls`` or, failing that, its nearest registered base."""
        for base in cls.__mro__:
            if base is object:
                break
            descriptor = self._by_type.get(base)
            if descriptor is not None:
                return descriptor
        return None

    def resolve_slot(self, slot: Slot) -> ComponentDescriptor:
        """Map a type, name, identity or descriptor to the registered descriptor."""
        descriptor: Optional[ComponentDescriptor]
        if isinstance(slot, ComponentDescriptor):
            descriptor = self._by_identity.get(slot.identity)
            if descriptor is not slot:
                descriptor = None
        elif isinstance(slot, type):
            descriptor = self.descriptor_for_type(slot)
        elif isinstance(slot, str):
            descriptor = self._by_name.get(slot)
        elif isinstance(slot, int) and not isinstance(slot, bool):
            descriptor = self._by_identity.get(slot)
        else:
            raise UnknownComponent(f"Cannot use {slot!r} as a component slot")
        if descriptor is None:
            raise UnknownComponent(f"No component registered for slot {_slot_label(slot)}")
        return descriptor

    def resolve_value(self, value: Any) -> ComponentDescriptor:
        """Descriptor for a value to be saved, found from its type."""
        descriptor = self.descriptor_for_type(type(value))
        if descriptor is None:
            raise UnknownComponent(
                f"No component registered for values of type {type(value).__name__}"
            )
        return descriptor

    def __contains__(self, identity: object) -> bool:
        return identity in self._by_identity

    def __iter__(self) -> Iterator[ComponentDescriptor]:
        return iter(list(self._by_identity.values()))

    def __len__(self) -> int:
        return len(self._by_identity)


def _slot_label(slot: Any) -> str:
    if isinstance(slot, type):
        return slot.__name__
    if isinstance(slot, int) and not isinstance(slot, bool):
        return f"0x{slot:08x}"
    if isinstance(slot, ComponentDescriptor):
        return slot.label
    return repr(slot)
