"""Streaming content digests for model files.

The same hash family is used to look files up in the catalog and to verify
downloads, so both sides compare equal hex strings.
"""

from __future__ import annotations

import hashlib
import os
from typing import Callable, Optional

import click

HASH_ALGORITHM = "sha256"

# 1 MiB keeps memory flat for multi-gigabyte checkpoints.
CHUNK_SIZE = 1024 * 1024

ProgressCallback = Callable[[int], None]


def new_hash() -> "hashlib._Hash":
    """Return a fresh digest accumulator."""
    return hashlib.new(HASH_ALGORITHM)


def file_digest(
    path: str,
    *,
    chunk_size: int = CHUNK_SIZE,
    progress: Optional[ProgressCallback] = None,
) -> str:
    """Return the lower-case hex digest of the file at *path*.

    Parameters
    ----------
    path:
        File to hash.
    chunk_size:
        Bytes read per iteration.
    progress:
        Called with the size of every chunk consumed.

    Raises
    ------
    OSError
        If the file cannot be opened or read.
    """
    h = new_hash()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
            if progress is not None:
                progress(len(chunk))
    return h.hexdigest()


def digest_with_progress(path: str) -> str:
    """Hash *path* while rendering a progress bar on stderr."""
    size = os.path.getsize(path)
    with click.progressbar(
        length=size,
        label=os.path.basename(path),
        file=click.get_text_stream("stderr"),
    ) as bar:
        return file_digest(path, progress=bar.update)
