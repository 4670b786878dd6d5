"""
modelup: find newer catalog versions of local model files and fetch them.
"""

from __future__ import annotations

__version__ = "1.0.0"

from .catalog import CatalogGateway, CivitaiCatalog, FileRecord, ModelRecord, VersionRecord
from .errors import (
    AlreadyExistsError,
    CatalogError,
    ConfigurationError,
    FileNotFoundInVersionError,
    IntegrityError,
    MissingFilenameError,
    ModelupError,
    NotFoundError,
    TransportError,
    UserCancelled,
)
from .fetcher import Fetcher, select_file
from .hashing import file_digest
from .resolver import Update, find_update, find_updates_in_dir

__all__ = [
    "AlreadyExistsError",
    "CatalogError",
    "CatalogGateway",
    "CivitaiCatalog",
    "ConfigurationError",
    "Fetcher",
    "FileNotFoundInVersionError",
    "FileRecord",
    "IntegrityError",
    "MissingFilenameError",
    "ModelRecord",
    "ModelupError",
    "NotFoundError",
    "TransportError",
    "Update",
    "UserCancelled",
    "VersionRecord",
    "file_digest",
    "find_update",
    "find_updates_in_dir",
    "select_file",
]
