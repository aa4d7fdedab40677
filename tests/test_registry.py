import pytest

from savecodec import (
    ComponentRegistry,
    DuplicateIdentity,
    IncompleteMigrationChain,
    RegistrationError,
    RegistryFrozen,
    UnknownComponent,
    identity_for_name,
)

from components import (
    INVENTORY_NAME,
    POSITION_ID,
    Inventory,
    Position,
    Settings,
    register_position,
)


def _noop(value):
    return value


def _decode(payload):
    return payload


def _encode(value):
    return bytes(value)


def test_lookup_and_current_version(registry: ComponentRegistry):
    descriptor = registry.lookup(POSITION_ID)
    assert descriptor is not None
    assert descriptor.component_type is Position
    assert registry.current_version_of(POSITION_ID) == 1
    assert registry.current_version_of(identity_for_name(INVENTORY_NAME)) == 2
    assert registry.lookup(999) is None
    assert registry.current_version_of(999) is None
    assert len(registry) == 3


def test_string_identity_is_interned_to_crc32(registry: ComponentRegistry):
    descriptor = registry.resolve_slot(INVENTORY_NAME)
    assert descriptor.identity == identity_for_name("inventory")
    assert descriptor.name == "inventory"
    assert 0 <= descriptor.identity <= 0xFFFFFFFF


def test_duplicate_identity_rejected(registry: ComponentRegistry):
    with pytest.raises(DuplicateIdentity):
        registry.register(POSITION_ID, 0, {0: _decode}, None, _encode)


def test_name_hashing_to_registered_identity_rejected():
    registry = ComponentRegistry()
    registry.register(identity_for_name("player"), 0, {0: _decode}, None, _encode)
    with pytest.raises(DuplicateIdentity):
        registry.register("player", 0, {0: _decode}, None, _encode)


def test_type_bound_twice_rejected(registry: ComponentRegistry):
    with pytest.raises(DuplicateIdentity):
        registry.register(42, 0, {0: _decode}, None, _encode, component_type=Position)


def test_missing_middle_upgrade_step_fails_at_registration():
    registry = ComponentRegistry()
    with pytest.raises(IncompleteMigrationChain) as excinfo:
        registry.register(
            7,
            3,
            {0: _decode, 1: _decode, 2: _decode, 3: _decode},
            {0: _noop, 2: _noop},
            _encode,
        )
    assert "v1->v2" in str(excinfo.value)
    assert registry.lookup(7) is None


def test_short_upgrade_sequence_fails():
    registry = ComponentRegistry()
    with pytest.raises(IncompleteMigrationChain):
        registry.register(7, 2, _decode_versioned, [_noop], _encode)


def test_upgrade_steps_beyond_current_version_fail():
    registry = ComponentRegistry()
    with pytest.raises(IncompleteMigrationChain):
        registry.register(7, 1, _decode_versioned, [_noop, _noop], _encode)


def test_missing_decoder_for_old_version_fails():
    registry = ComponentRegistry()
    with pytest.raises(IncompleteMigrationChain):
        registry.register(7, 1, {1: _decode}, [_noop], _encode)


def _decode_versioned(payload, version):
    return (version, payload)


def test_single_versioned_decoder_is_bound_per_version():
    registry = ComponentRegistry()
    descriptor = registry.register(7, 2, _decode_versioned, [_noop, _noop], _encode)
    assert descriptor.decoder_for(0)(b"a") == (0, b"a")
    assert descriptor.decoder_for(2)(b"b") == (2, b"b")
    assert len(descriptor.upgrades_from(0)) == 2
    assert descriptor.upgrades_from(2) == ()


@pytest.mark.parametrize("identity", [-1, 2**32, True, 1.5])
def test_invalid_identity_rejected(identity):
    registry = ComponentRegistry()
    with pytest.raises(RegistrationError):
        registry.register(identity, 0, {0: _decode}, None, _encode)


def test_empty_name_rejected():
    with pytest.raises(RegistrationError):
        ComponentRegistry().register("", 0, {0: _decode}, None, _encode)


def test_non_callable_encoder_rejected():
    with pytest.raises(RegistrationError):
        ComponentRegistry().register(1, 0, {0: _decode}, None, b"not callable")


def test_register_after_freeze_rejected(registry: ComponentRegistry):
    registry.freeze()
    assert registry.frozen
    with pytest.raises(RegistryFrozen):
        registry.register(50, 0, {0: _decode}, None, _encode)
    # Reads keep working after freeze
    assert registry.lookup(POSITION_ID) is not None


def test_freeze_is_idempotent(registry: ComponentRegistry):
    assert registry.freeze() is registry
    assert registry.freeze() is registry


def test_resolve_slot_by_type_name_identity_and_descriptor(registry: ComponentRegistry):
    by_type = registry.resolve_slot(Inventory)
    assert registry.resolve_slot(INVENTORY_NAME) is by_type
    assert registry.resolve_slot(by_type.identity) is by_type
    assert registry.resolve_slot(by_type) is by_type


def test_resolve_slot_unknown(registry: ComponentRegistry):
    with pytest.raises(UnknownComponent):
        registry.resolve_slot("missing")
    with pytest.raises(UnknownComponent):
        registry.resolve_slot(12345)
    with pytest.raises(UnknownComponent):
        registry.resolve_slot(dict)
    with pytest.raises(UnknownComponent):
        registry.resolve_slot(3.0)


def test_descriptor_from_other_registry_is_not_resolved(registry: ComponentRegistry):
    other = ComponentRegistry()
    foreign = register_position(other)
    with pytest.raises(UnknownComponent):
        registry.resolve_slot(foreign)


def test_subclass_values_resolve_to_base_component(registry: ComponentRegistry):
    class TaggedSettings(Settings):
        pass

    assert registry.resolve_value(TaggedSettings()).component_type is Settings
    with pytest.raises(UnknownComponent):
        registry.resolve_value(object())


def test_register_model_binds_latest_model(registry: ComponentRegistry):
    descriptor = registry.resolve_slot(Inventory)
    assert descriptor.current_version == 2
    assert descriptor.component_type is Inventory
    payload = descriptor.encode(Inventory(items={"potion": 2}, gold=5))
    assert descriptor.decoder_for(2)(payload) == Inventory(items={"potion": 2}, gold=5)


def test_register_model_requires_models():
    with pytest.raises(RegistrationError):
        ComponentRegistry().register_model("empty", {})
