"""Base class for catalog backends."""

from __future__ import annotations

from ._types import ModelRecord, VersionRecord


class CatalogGateway:
    """Read-only lookups against a remote model catalog.

    Subclasses implement ``get_version_by_hash()`` and ``get_model()``.
    Both raise :class:`~modelup.errors.NotFoundError` for unknown keys and
    :class:`~modelup.errors.TransportError` for anything else that goes
    wrong on the wire.
    """

    name: str = "base"

    def get_version_by_hash(self, digest: str) -> VersionRecord:
        """Return the version whose file has the given content digest."""
        raise NotImplementedError

    def get_model(self, model_id: int) -> ModelRecord:
        """Return a model together with its full version list."""
        raise NotImplementedError
