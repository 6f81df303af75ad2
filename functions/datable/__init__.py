"""
Typed CRUD layer over the Firebase Realtime Database.

Model dataclasses report their own location in the tree as a list of path
segments; ``FirebaseCRUDManager`` resolves that location against a single
root reference and reads or writes the encoded model there.
"""

from datable.entity import (
    Datable,
    from_field_mapping,
    parent_path,
    to_field_mapping,
    validate_path,
)
from datable.errors import DatableError, DecodingError, EncodingError, InvalidPathError
from datable.manager import CRUDManager, FirebaseCRUDManager
from datable.store import InMemoryReference, StoreReference, resolve

__all__ = [
    "CRUDManager",
    "Datable",
    "DatableError",
    "DecodingError",
    "EncodingError",
    "FirebaseCRUDManager",
    "InMemoryReference",
    "InvalidPathError",
    "StoreReference",
    "from_field_mapping",
    "parent_path",
    "resolve",
    "to_field_mapping",
    "validate_path",
]
