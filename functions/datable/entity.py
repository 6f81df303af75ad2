"""
Addressable entities and the encode/decode boundary.

Any dataclass that exposes a ``path`` property (a list of key segments)
can be stored by ``FirebaseCRUDManager``. The dataclass fields are encoded
to a JSON-compatible dict on the way in and decoded with dacite on the way
out.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from enum import Enum
from types import UnionType
from typing import (
    Any,
    Iterable,
    Protocol,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    runtime_checkable,
)

from dacite import Config, DaciteError, from_dict

from datable.errors import DecodingError, EncodingError, InvalidPathError

T = TypeVar("T")

# Characters the Realtime Database does not allow inside a key.
INVALID_KEY_CHARACTERS = frozenset(".$#[]/")

DECODE_CONFIG = Config(cast=[Enum, tuple], type_hooks={float: float})


@runtime_checkable
class Datable(Protocol):
    """A serializable value that knows where it lives in the store."""

    @property
    def path(self) -> list[str]:
        ...


def validate_path(segments: Iterable[str], *, allow_empty: bool = True) -> list[str]:
    """Return ``segments`` as a list, raising InvalidPathError on a bad key."""
    if isinstance(segments, (str, bytes)):
        raise InvalidPathError(
            f"Path must be a sequence of segments, not a string: {segments!r}"
        )
    path = list(segments)
    if not path and not allow_empty:
        raise InvalidPathError("Path must contain at least one segment")
    for segment in path:
        if not isinstance(segment, str) or not segment:
            raise InvalidPathError(f"Invalid path segment {segment!r} in {path}")
        if INVALID_KEY_CHARACTERS.intersection(segment):
            raise InvalidPathError(
                f"Path segment {segment!r} contains one of "
                f"{''.join(sorted(INVALID_KEY_CHARACTERS))!r}"
            )
    return path


def entity_path(entity: Datable) -> list[str]:
    return validate_path(entity.path, allow_empty=False)


def parent_path(entity: Datable) -> list[str]:
    """
    Path of the collection that holds ``entity`` and its siblings.

    A top-level entity (one segment) yields ``[]``, i.e. the root.
    """
    return entity_path(entity)[:-1]


def _encode_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_field_mapping(value: Any) -> dict[str, Any]:
    """
    Encode a dataclass instance (or a mapping) to a JSON-compatible dict.

    Raises EncodingError if the value does not encode to a JSON object.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        raw = dataclasses.asdict(value)
    elif isinstance(value, Mapping):
        raw = dict(value)
    else:
        raise EncodingError(
            f"{type(value).__name__} does not encode to a field mapping"
        )

    try:
        encoded = json.loads(json.dumps(raw, default=_encode_default, allow_nan=False))
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Could not encode {type(value).__name__}: {e}") from e

    if not isinstance(encoded, dict):
        raise EncodingError(
            f"{type(value).__name__} does not encode to a field mapping"
        )
    return encoded


def type_name(target_type: Any) -> str:
    return getattr(target_type, "__name__", None) or repr(target_type)


def _matches(data: Any, target_type: Any) -> bool:
    # Parameterised types are checked against their origin only, so
    # list[str] accepts any list and Optional[int] accepts an int.
    origin = get_origin(target_type)
    if origin is Union or origin is UnionType:
        return any(_matches(data, arg) for arg in get_args(target_type))
    if target_type is Any:
        return True
    if target_type is float:
        return isinstance(data, (int, float)) and not isinstance(data, bool)
    try:
        return isinstance(data, origin or target_type)
    except TypeError:
        return False


def from_field_mapping(data: Any, target_type: Type[T]) -> T:
    """Decode a raw snapshot value as ``target_type``."""
    if data is None:
        raise DecodingError(f"No value stored to decode as {type_name(target_type)}")

    if dataclasses.is_dataclass(target_type):
        if not isinstance(data, Mapping):
            raise DecodingError(
                f"Expected a mapping for {type_name(target_type)}, "
                f"got {type(data).__name__}"
            )
        try:
            return from_dict(data_class=target_type, data=data, config=DECODE_CONFIG)
        except (DaciteError, TypeError, ValueError) as e:
            raise DecodingError(
                f"Could not decode {type_name(target_type)}: {e}"
            ) from e

    if not _matches(data, target_type):
        raise DecodingError(
            f"Expected {type_name(target_type)}, got {type(data).__name__}"
        )
    # Realtime Database hands back whole numbers for floats that have no
    # fractional part.
    if target_type is float:
        return float(data)
    return data
