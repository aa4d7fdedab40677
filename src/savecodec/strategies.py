"""Ready-made payload encodings for components.

Each strategy is an ``encode``/``decode`` pair operating on one component
version. Pass ``strategy.encode`` as a registry encoder and
``strategy.decode`` as the decoder for the version it describes.
"""

from __future__ import annotations

import dataclasses
import json
import struct
from typing import Any, Callable, NamedTuple, Optional, Type

from pydantic import BaseModel


class Strategy(NamedTuple):
    encode: Callable[[Any], bytes]
    decode: Callable[[bytes], Any]


def pydantic_strategy(model: Type[BaseModel]) -> Strategy:
    """JSON payloads validated by a pydantic model.

    Validation errors on decode propagate as ``pydantic.ValidationError`` and
    are reported as corrupt payloads by the migration engine.
    """
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise TypeError(f"{model!r} is not a pydantic model class")

    def encode(value: Any) -> bytes:
        if not isinstance(value, model):
            raise TypeError(f"Expected {model.__name__}, got {type(value).__name__}")
        return value.model_dump_json().encode("utf-8")

    def decode(payload: bytes) -> BaseModel:
        return model.model_validate_json(payload)

    return Strategy(encode, decode)


def canonical_json(obj: Any) -> bytes:
    """Compact JSON with sorted keys, so equal values encode to equal bytes."""
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")


def json_strategy() -> Strategy:
    """Plain JSON payloads for dict/list/scalar values."""

    def decode(payload: bytes) -> Any:
        return json.loads(payload.decode("utf-8"))

    return Strategy(canonical_json, decode)


def struct_strategy(fmt: str, factory: Optional[Callable[..., Any]] = None) -> Strategy:
    """Fixed-layout binary payloads.

    ``fmt`` is a :mod:`struct` format; little-endian is assumed unless it
    names a byte order. Values are tuples, dataclass instances or NamedTuples;
    ``factory`` rebuilds them on decode (plain tuples when omitted).
    """
    if fmt[:1] not in ("<", ">", "!", "=", "@"):
        fmt = "<" + fmt
    layout = struct.Struct(fmt)

    def encode(value: Any) -> bytes:
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            fields = dataclasses.astuple(value)
        elif isinstance(value, tuple):
            fields = value
        else:
            fields = (value,)
        return layout.pack(*fields)

    def decode(payload: bytes) -> Any:
        fields = layout.unpack(payload)
        if factory is None:
            return fields
        return factory(*fields)

    return Strategy(encode, decode)
