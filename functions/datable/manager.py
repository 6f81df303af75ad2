"""
Path-addressed CRUD over a single root reference.

Operations reach the store in the order they are issued, on one background
worker. Reads hand back a ``concurrent.futures.Future`` that resolves
exactly once with the decoded value or the error. Writes encode on the
calling thread, so encoding errors are raised immediately, then issue the
I/O in the background without reporting its outcome unless
``surface_write_errors`` is set.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Iterable, Optional, Protocol, Type, TypeVar

from datable.entity import (
    Datable,
    entity_path,
    from_field_mapping,
    parent_path,
    type_name,
    to_field_mapping,
    validate_path,
)
from datable.errors import DecodingError
from datable.store import StoreReference, resolve

logger = logging.getLogger(__name__)

T = TypeVar("T")
D = TypeVar("D", bound=Datable)

Callback = Callable[[Future], Any]


class CRUDManager(Protocol):
    """Operations the application needs from the store accessor."""

    def create(self, entity: Datable) -> Optional[Future]:
        ...

    def read_path(
        self,
        path: Iterable[str],
        target_type: Type[T],
        callback: Optional[Callback] = None,
    ) -> Future:
        ...

    def read(self, entity: D, callback: Optional[Callback] = None) -> Future:
        ...

    def read_siblings(
        self, entity: D, callback: Optional[Callback] = None
    ) -> Future:
        ...

    def update(self, entity: Datable) -> Optional[Future]:
        ...

    def update_path(self, path: Iterable[str], value: Any) -> Optional[Future]:
        ...

    def delete(self, entity: Datable) -> Optional[Future]:
        ...

    def delete_path(self, path: Iterable[str]) -> Optional[Future]:
        ...


class FirebaseCRUDManager:
    """
    Store accessor bound to one root reference.

    ``root`` is normally ``firebase_admin.db.reference("/")``; any object
    implementing ``StoreReference`` works. The manager's own executor has a
    single worker, so operations reach the store in the order they were
    issued and a read always sees earlier writes. A caller-supplied
    ``executor`` takes over that guarantee; the manager does not shut it down.

    Invalid paths raise InvalidPathError synchronously for every operation.
    """

    def __init__(
        self,
        root: StoreReference,
        *,
        executor: Optional[Executor] = None,
        surface_write_errors: bool = False,
    ):
        self._root = root
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="datable"
        )
        self.surface_write_errors = surface_write_errors

    # Writes

    def create(self, entity: Datable) -> Optional[Future]:
        """Replace whatever is stored at ``entity.path`` with the entity."""
        values = to_field_mapping(entity)
        ref = resolve(self._root, entity_path(entity))
        return self._write("create", ref, ref.set, values)

    def update(self, entity: Datable) -> Optional[Future]:
        """Merge the entity's fields into the value stored at ``entity.path``."""
        values = to_field_mapping(entity)
        ref = resolve(self._root, entity_path(entity))
        return self._write("update", ref, ref.update, values)

    def update_path(self, path: Iterable[str], value: Any) -> Optional[Future]:
        values = to_field_mapping(value)
        ref = resolve(self._root, validate_path(path))
        return self._write("update", ref, ref.update, values)

    def delete(self, entity: Datable) -> Optional[Future]:
        ref = resolve(self._root, entity_path(entity))
        return self._write("delete", ref, ref.delete)

    def delete_path(self, path: Iterable[str]) -> Optional[Future]:
        ref = resolve(self._root, validate_path(path))
        return self._write("delete", ref, ref.delete)

    # Reads

    def read_path(
        self,
        path: Iterable[str],
        target_type: Type[T],
        callback: Optional[Callback] = None,
    ) -> Future:
        """Fetch the value at ``path`` and decode it as ``target_type``."""
        ref = resolve(self._root, validate_path(path))
        return self._read(self._fetch, ref, target_type, callback=callback)

    def read(self, entity: D, callback: Optional[Callback] = None) -> Future:
        """Fetch the stored version of ``entity``, decoded as its own type."""
        ref = resolve(self._root, entity_path(entity))
        return self._read(self._fetch, ref, type(entity), callback=callback)

    def read_siblings(
        self, entity: D, callback: Optional[Callback] = None
    ) -> Future:
        """
        Fetch every child of the collection holding ``entity``.

        Each child is decoded independently as ``type(entity)``; children
        that do not decode are left out of the result. The future fails
        only if the fetch fails or nothing is stored under the parent.
        Must not be used on a top-level entity, whose parent is the root.
        """
        ref = resolve(self._root, parent_path(entity))
        return self._read(self._fetch_children, ref, type(entity), callback=callback)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "FirebaseCRUDManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _read(
        self,
        fn: Callable[..., Any],
        *args: Any,
        callback: Optional[Callback] = None,
    ) -> Future:
        future = self._executor.submit(fn, *args)
        if callback is not None:
            future.add_done_callback(callback)
        return future

    @staticmethod
    def _fetch(ref: StoreReference, target_type: Type[T]) -> T:
        logger.debug("Reading %s as %s", ref.path, type_name(target_type))
        return from_field_mapping(ref.get(), target_type)

    @staticmethod
    def _fetch_children(ref: StoreReference, target_type: Type[T]) -> list[T]:
        logger.debug("Reading children of %s as %s", ref.path, type_name(target_type))
        value = ref.get()
        if isinstance(value, dict):
            children = list(value.items())
        elif isinstance(value, list):
            # Keys that look like array indices come back as a list.
            children = [(str(i), v) for i, v in enumerate(value) if v is not None]
        else:
            raise DecodingError(f"No children stored at {ref.path}")

        siblings = []
        for key, child in children:
            try:
                siblings.append(from_field_mapping(child, target_type))
            except DecodingError as e:
                logger.debug("Skipping %s/%s: %s", ref.path, key, e)
        return siblings

    def _write(
        self, operation: str, ref: StoreReference, fn: Callable[..., Any], *args: Any
    ) -> Optional[Future]:
        logger.debug("Issuing %s at %s", operation, ref.path)
        future = self._executor.submit(fn, *args)
        future.add_done_callback(partial(_log_write_outcome, operation, ref.path))
        if self.surface_write_errors:
            return future
        return None


def _log_write_outcome(operation: str, path: str, future: Future) -> None:
    if future.cancelled():
        logger.warning("%s at %s was cancelled", operation, path)
        return
    error = future.exception()
    if error is not None:
        logger.warning("%s at %s failed: %s", operation, path, error)
