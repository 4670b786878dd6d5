"""Catalog records and backends."""

from ._types import FileRecord, ModelRecord, VersionRecord, normalize_format
from .base import CatalogGateway
from .civitai import CivitaiCatalog

__all__ = [
    "CatalogGateway",
    "CivitaiCatalog",
    "FileRecord",
    "ModelRecord",
    "VersionRecord",
    "normalize_format",
]
