"""
Process-wide wiring for the store accessor.
"""

from __future__ import annotations

from datable.config import get_settings
from datable.manager import CRUDManager, FirebaseCRUDManager
from datable.store import InMemoryReference, StoreReference, create_firebase_root

_root_reference: StoreReference | None = None
_crud_manager: CRUDManager | None = None


def get_root_reference() -> StoreReference:
    """
    Return the single root reference used for the lifetime of the process.
    """
    global _root_reference
    if _root_reference:
        return _root_reference

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _root_reference = InMemoryReference()
    else:
        _root_reference = create_firebase_root(settings)
    return _root_reference


def get_crud_manager() -> CRUDManager:
    global _crud_manager
    if _crud_manager:
        return _crud_manager

    settings = get_settings()
    _crud_manager = FirebaseCRUDManager(
        get_root_reference(),
        surface_write_errors=settings.surface_write_errors,
    )
    return _crud_manager
