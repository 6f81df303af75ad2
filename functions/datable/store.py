"""
Location handles into the tree-shaped store.

``firebase_admin.db.Reference`` is the production handle. ``InMemoryReference``
mirrors the subset of its behaviour this package relies on, for development
and tests.
"""

from __future__ import annotations

import copy
import logging
import threading
from functools import reduce
from typing import Any, Iterable, Optional, Protocol

import firebase_admin
from firebase_admin import credentials, db

from datable.config import Settings
from datable.entity import validate_path

logger = logging.getLogger(__name__)


class StoreReference(Protocol):
    """The operations the CRUD layer needs from a database reference."""

    @property
    def key(self) -> Optional[str]:
        ...

    @property
    def path(self) -> str:
        ...

    def child(self, path: str) -> "StoreReference":
        ...

    def get(self) -> Any:
        ...

    def set(self, value: Any) -> None:
        ...

    def update(self, value: dict) -> None:
        ...

    def delete(self) -> None:
        ...


def resolve(root: StoreReference, segments: Iterable[str]) -> StoreReference:
    """Fold ``root`` through ``segments`` with one child lookup per segment."""
    return reduce(lambda ref, segment: ref.child(segment), segments, root)


def create_firebase_root(settings: Settings) -> StoreReference:
    """
    Return the root reference of the configured Realtime Database.

    The default firebase_admin app is initialised on first use and reused
    afterwards.
    """
    if not settings.database_url:
        raise ValueError("FIREBASE_DATABASE_URL is required for the Firebase store")

    try:
        app = firebase_admin.get_app()
    except ValueError:
        if settings.credentials_path:
            cred = credentials.Certificate(settings.credentials_path)
        else:
            cred = credentials.ApplicationDefault()
        app = firebase_admin.initialize_app(
            cred, {"databaseURL": settings.database_url}
        )
        logger.info("Initialised Firebase app for %s", settings.database_url)
    return db.reference("/", app=app)


def _prune(value: Any) -> Any:
    """
    Normalise a value the way the database stores it.

    None values and empty containers are dropped, and lists become
    mappings keyed by their string index.
    """
    if isinstance(value, (list, tuple)):
        value = {str(i): v for i, v in enumerate(value)}
    if isinstance(value, dict):
        pruned = {}
        for k, v in value.items():
            v = _prune(v)
            if v is not None:
                pruned[str(k)] = v
        return pruned or None
    return value


def _array_index(key: str) -> Optional[int]:
    if key.isdigit() and (key == "0" or not key.startswith("0")):
        return int(key)
    return None


def _key_order(key: str) -> tuple:
    # Integer-like keys sort numerically ahead of all other keys.
    index = _array_index(key)
    return (0, index, "") if index is not None else (1, 0, key)


def _materialise(value: Any) -> Any:
    """
    Copy a stored value for reading.

    A mapping whose keys are all array indices, with more than half of the
    slots up to the largest index filled, reads back as a list with None in
    the gaps.
    """
    if not isinstance(value, dict):
        return copy.deepcopy(value)
    indices = [_array_index(k) for k in value]
    if indices and None not in indices and 2 * len(indices) > max(indices) + 1:
        items = [None] * (max(indices) + 1)
        for key, index in zip(value, indices):
            items[index] = _materialise(value[key])
        return items
    return {k: _materialise(value[k]) for k in sorted(value, key=_key_order)}


class _Tree:
    def __init__(self):
        self.data: Optional[dict] = None
        self.lock = threading.RLock()


class InMemoryReference:
    """
    Thread-safe in-memory stand-in for ``firebase_admin.db.Reference``.

    References created with ``child`` share the same tree. Lists are stored
    as mappings keyed by index, so their elements are addressable children.
    Children are returned with integer-like keys first, in numeric order,
    then the rest in lexicographic order.
    """

    def __init__(self, _tree: Optional[_Tree] = None, _segments: tuple = ()):
        self._tree = _tree or _Tree()
        self._segments = _segments

    @property
    def key(self) -> Optional[str]:
        return self._segments[-1] if self._segments else None

    @property
    def path(self) -> str:
        return "/" + "/".join(self._segments)

    def child(self, path: str) -> "InMemoryReference":
        if not path or not isinstance(path, str):
            raise ValueError(f"Invalid path argument: {path!r}")
        segments = validate_path(s for s in path.split("/") if s)
        return type(self)(self._tree, self._segments + tuple(segments))

    def get(self) -> Any:
        with self._tree.lock:
            node = self._tree.data
            for segment in self._segments:
                if not isinstance(node, dict) or segment not in node:
                    return None
                node = node[segment]
            return _materialise(node)

    def set(self, value: Any) -> None:
        if value is None:
            raise ValueError("Value must not be None.")
        with self._tree.lock:
            self._write(self._segments, _prune(value))

    def update(self, value: dict) -> None:
        if not value or not isinstance(value, dict):
            raise ValueError("Value argument must be a non-empty dictionary.")
        if None in value.keys():
            raise ValueError("Dictionary must not contain None keys.")
        with self._tree.lock:
            for key, child_value in value.items():
                segments = tuple(validate_path(s for s in str(key).split("/") if s))
                self._write(self._segments + segments, _prune(child_value))

    def delete(self) -> None:
        with self._tree.lock:
            self._write(self._segments, None)

    def _write(self, segments: tuple, value: Any) -> None:
        if not segments:
            self._tree.data = copy.deepcopy(value)
            return

        if not isinstance(self._tree.data, dict):
            if value is None:
                return
            self._tree.data = {}
        # Walk down creating intermediate nodes, remembering the trail so
        # emptied parents can be pruned after a delete.
        trail = []
        node = self._tree.data
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[segment] = child
            trail.append((node, segment))
            node = child

        if value is None:
            node.pop(segments[-1], None)
        else:
            node[segments[-1]] = copy.deepcopy(value)

        while trail and not node:
            parent, segment = trail.pop()
            del parent[segment]
            node = parent
        if not self._tree.data:
            self._tree.data = None

    def __repr__(self) -> str:
        return f"InMemoryReference({self.path!r})"
