"""Find newer catalog versions for local model files.

Local files are identified by content digest, looked up in the catalog, and
compared by publication time against every version of their model.

Usage::

    from modelup.resolver import find_update, find_updates_in_dir

    update = find_update(catalog, "models/Lora/style.safetensors")
    for update in find_updates_in_dir(catalog, "models/Lora"):
        print(update.model_name, list(update.candidates))
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional

import click

from .catalog import CatalogGateway, VersionRecord
from .config import MODEL_FILE_EXTENSIONS
from .errors import NotFoundError, UserCancelled
from .hashing import file_digest

logger = logging.getLogger(__name__)

DigestFn = Callable[[str], str]


@dataclass
class Update:
    """Newer versions available for one model."""

    model_name: str
    current_version: str
    candidates: dict[str, VersionRecord] = field(default_factory=dict)
    local_paths: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise UserCancelled("Cancelled")


def is_model_file(path: str, extensions: Iterable[str] = MODEL_FILE_EXTENSIONS) -> bool:
    """Return True if *path* has one of the model-file extensions."""
    ext = os.path.splitext(path)[1].lower()
    return ext in {e.lower() for e in extensions}


def iter_model_files(
    directory: str,
    extensions: Iterable[str] = MODEL_FILE_EXTENSIONS,
) -> Iterator[str]:
    """Yield model files under *directory*, recursively, in sorted order."""
    exts = tuple(extensions)
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            if is_model_file(name, exts):
                yield os.path.join(root, name)


def newer_versions(
    current: VersionRecord,
    versions: Iterable[VersionRecord],
) -> dict[str, VersionRecord]:
    """Return versions published strictly after *current*, oldest first.

    Keys are version names. A later version whose name is already taken is
    keyed ``"<name> (#<id>)"`` instead of replacing the earlier one.
    """
    newer = [v for v in versions if v.published_at > current.published_at]
    newer.sort(key=lambda v: v.published_at)

    candidates: dict[str, VersionRecord] = {}
    for v in newer:
        label = v.name
        if label in candidates:
            logger.debug("Duplicate version name %r in model %s", v.name, v.model_id)
            label = f"{v.name} (#{v.id})"
        candidates[label] = v
    return candidates


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def find_update(
    catalog: CatalogGateway,
    path: str,
    *,
    digest: DigestFn = file_digest,
    cancel: Optional[threading.Event] = None,
) -> Update:
    """Resolve a single file and return its newer versions.

    The returned :class:`Update` may have no candidates.

    Raises
    ------
    NotFoundError
        If the catalog has no version for the file's digest.
    UserCancelled
        If *cancel* is set before a network round trip.
    """
    _check_cancel(cancel)
    file_hash = digest(path)

    _check_cancel(cancel)
    current = catalog.get_version_by_hash(file_hash)

    _check_cancel(cancel)
    model = catalog.get_model(current.model_id)

    return Update(
        model_name=model.name,
        current_version=current.name,
        candidates=newer_versions(current, model.versions),
        local_paths=[path],
    )


def find_updates_in_dir(
    catalog: CatalogGateway,
    directory: str,
    *,
    extensions: Iterable[str] = MODEL_FILE_EXTENSIONS,
    digest: DigestFn = file_digest,
    cancel: Optional[threading.Event] = None,
) -> list[Update]:
    """Resolve every model file under *directory*, grouped by model.

    Files unknown to the catalog, files that cannot be read and models
    missing from the catalog are reported and skipped. For each model the most
    recently published local version is treated as current, so versions
    the user already owns are never offered again. Models without newer
    versions are left out of the result.

    Raises
    ------
    UserCancelled
        If *cancel* is set between files or before a network round trip.
    """
    # model id -> [(version, path), ...] in encounter order
    found: dict[int, list[tuple[VersionRecord, str]]] = {}

    for path in iter_model_files(directory, extensions):
        _check_cancel(cancel)
        try:
            file_hash = digest(path)
        except OSError as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            click.echo(click.style(f"Failed to update {os.path.basename(path)}: {exc}", fg="red"), err=True)
            continue

        _check_cancel(cancel)
        try:
            version = catalog.get_version_by_hash(file_hash)
        except NotFoundError:
            logger.warning("No catalog entry for %s (%s)", path, file_hash)
            click.echo(click.style(f"Model information is not found: {os.path.basename(path)}", fg="yellow"))
            continue

        found.setdefault(version.model_id, []).append((version, path))

    updates: list[Update] = []
    for model_id, entries in found.items():
        # max() keeps the first of equal timestamps.
        current, _ = max(entries, key=lambda e: e[0].published_at)
        local_paths = [p for v, p in entries if v.id == current.id]

        _check_cancel(cancel)
        try:
            model = catalog.get_model(model_id)
        except NotFoundError:
            logger.warning("No catalog entry for model %s (%s)", model_id, local_paths[0])
            click.echo(click.style(f"Model information is not found: {os.path.basename(local_paths[0])}", fg="yellow"))
            continue

        candidates = newer_versions(current, model.versions)
        if not candidates:
            logger.debug("%s is up to date (%s)", model.name, current.name)
            continue

        updates.append(
            Update(
                model_name=model.name,
                current_version=current.name,
                candidates=candidates,
                local_paths=local_paths,
            )
        )

    return updates
