"""
Errors raised by the CRUD layer.

Transport errors raised by the Firebase SDK are never wrapped; they reach
the caller as-is through the read futures.
"""


class DatableError(Exception):
    """Base class for errors raised by this package."""


class EncodingError(DatableError):
    """A value could not be encoded to a field mapping. Raised before any I/O."""


class DecodingError(DatableError):
    """A fetched snapshot could not be decoded as the requested type."""


class InvalidPathError(DatableError, ValueError):
    """A path (or one of its segments) cannot address a location in the store."""
