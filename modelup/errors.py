"""Exception types raised by modelup.

Recoverable errors are reported against a single target and the run moves
on; :class:`UserCancelled` aborts the whole run.
"""

from __future__ import annotations

from typing import Optional


class ModelupError(RuntimeError):
    """Base class for all modelup errors."""


class ConfigurationError(ModelupError, ValueError):
    """Raised when settings or CLI options are invalid."""


class NotFoundError(ModelupError):
    """Raised when the catalog has no record for a digest or model id."""


class FileNotFoundInVersionError(NotFoundError):
    """Raised when a version has no file matching the preferred format and no primary file."""


class TransportError(ModelupError):
    """Raised on a non-success HTTP status or a network failure."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MissingFilenameError(TransportError):
    """Raised when a download response does not declare a filename."""


class CatalogError(ModelupError):
    """Raised when a catalog payload cannot be parsed."""


class IntegrityError(ModelupError):
    """Raised when downloaded bytes do not match the declared digest."""


class AlreadyExistsError(ModelupError):
    """Raised when a download would overwrite an existing file."""


class UserCancelled(ModelupError):
    """Raised when the user interrupts a prompt or the run is cancelled."""
