"""Canonical catalog storage for word roots and standard fields."""

from .base import StorageBase
from .fields import FieldMixin
from .roots import RootMixin


class CatalogStorage(
    StorageBase,
    RootMixin,
    FieldMixin,
):
    """
    Storage handling the word root vocabulary and the standard fields
    composed from it. This is the source of truth; the vector index is
    derived from it.
    """
    pass


__all__ = ["CatalogStorage"]
