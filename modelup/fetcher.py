"""Download and verify version files.

A download is streamed into a hidden ``.part`` file next to its destination
while its digest is accumulated. Only when the digest matches the catalog's
declared value is the file renamed to the name the server declared in its
``Content-Disposition`` header.
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import nullcontext
from email.message import Message
from typing import Callable, ContextManager, Optional

import httpx

from .catalog import FileRecord, VersionRecord
from .config import SAFETENSOR_FORMAT
from .errors import (
    AlreadyExistsError,
    FileNotFoundInVersionError,
    IntegrityError,
    MissingFilenameError,
    TransportError,
    UserCancelled,
)
from .hashing import CHUNK_SIZE, ProgressCallback, new_hash

logger = logging.getLogger(__name__)

PART_SUFFIX = ".part"

# (filename, total bytes or None) -> context yielding a per-chunk callback
ProgressFactory = Callable[[str, Optional[int]], ContextManager[Optional[ProgressCallback]]]


def select_file(version: VersionRecord, preferred_format: str) -> FileRecord:
    """Pick the file to download from *version*.

    The first file in *preferred_format* wins; otherwise the primary file.

    Raises
    ------
    FileNotFoundInVersionError
        If neither a preferred-format file nor a primary file exists.
    """
    wanted = preferred_format.lower()
    for f in version.files:
        if f.format.lower() == wanted:
            return f
    for f in version.files:
        if f.primary:
            return f
    raise FileNotFoundInVersionError(
        f"Model files are not found in version {version.name}"
    )


def parse_filename(content_disposition: Optional[str]) -> str:
    """Extract the attachment filename from a ``Content-Disposition`` value.

    Handles both ``filename=`` and RFC 5987 ``filename*=``. Directory parts
    are dropped so the file always lands in the destination directory.

    Raises
    ------
    MissingFilenameError
        If the header is absent or declares no usable filename.
    """
    if not content_disposition:
        raise MissingFilenameError("Response has no Content-Disposition header")

    msg = Message()
    msg["content-disposition"] = content_disposition
    raw = msg.get_filename()
    if not raw:
        raise MissingFilenameError(f"No filename in Content-Disposition: {content_disposition!r}")

    name = os.path.basename(raw.replace("\\", "/")).strip()
    if name in ("", ".", ".."):
        raise MissingFilenameError(f"Unusable filename in Content-Disposition: {raw!r}")
    return name


class Fetcher:
    """Fetch the chosen file of a version into a directory.

    Parameters
    ----------
    client:
        HTTP client shared with the catalog.
    preferred_format:
        ``"safetensor"`` or ``"pickle"``.
    progress:
        Called with the filename and expected size when a download starts;
        returns a context manager yielding a callback that receives the
        size of every chunk (or None).
    cancel:
        Checked between chunks; when set, the download is abandoned. Meant
        for callers that drive the library from another thread. The CLI
        relies on KeyboardInterrupt instead, which cleans up the same way.
    """

    def __init__(
        self,
        client: httpx.Client,
        preferred_format: str = SAFETENSOR_FORMAT,
        *,
        chunk_size: int = CHUNK_SIZE,
        progress: Optional[ProgressFactory] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self._client = client
        self.preferred_format = preferred_format
        self.chunk_size = chunk_size
        self._progress = progress
        self._cancel = cancel

    def download(self, version: VersionRecord, dest_dir: str) -> str:
        """Download *version* into *dest_dir* and return the final path.

        Raises
        ------
        FileNotFoundInVersionError
            If the version has no suitable file.
        TransportError
            On network failure or a non-success status.
        MissingFilenameError
            If the server does not name the file.
        AlreadyExistsError
            If the destination file already exists.
        IntegrityError
            If the downloaded bytes do not match the declared digest.
        UserCancelled
            If the cancel event is set during the transfer.
        """
        file = select_file(version, self.preferred_format)
        logger.debug("Downloading %s from %s", file.name, file.download_url)

        try:
            with self._client.stream("GET", file.download_url) as res:
                if not res.is_success:
                    raise TransportError(
                        f"Download failed: HTTP {res.status_code}",
                        status_code=res.status_code,
                    )

                filename = parse_filename(res.headers.get("content-disposition"))
                dest = os.path.join(dest_dir, filename)
                if os.path.exists(dest):
                    raise AlreadyExistsError(f"{filename} already exists in {dest_dir}")

                total = _content_length(res, file)
                bar = self._progress(filename, total) if self._progress else nullcontext(None)
                with bar as on_chunk:
                    digest = self._write_verified(res, dest, file.sha256, on_chunk)
        except httpx.HTTPError as exc:
            raise TransportError(f"Download failed: {exc}") from exc

        logger.info("Downloaded %s (%s)", dest, digest)
        return dest

    def _write_verified(
        self,
        res: httpx.Response,
        dest: str,
        expected: str,
        on_chunk: Optional[ProgressCallback],
    ) -> str:
        """Stream *res* to a temp file, verify, then move it to *dest*."""
        directory, filename = os.path.split(dest)
        part = os.path.join(directory, f".{filename}{PART_SUFFIX}")
        h = new_hash()

        try:
            with open(part, "wb") as f:
                for chunk in res.iter_bytes(self.chunk_size):
                    if self._cancel is not None and self._cancel.is_set():
                        raise UserCancelled(f"Download of {filename} cancelled")
                    f.write(chunk)
                    h.update(chunk)
                    if on_chunk is not None:
                        on_chunk(len(chunk))

            actual = h.hexdigest()
            if not expected:
                raise IntegrityError(f"No digest declared for {filename}; refusing unverified file")
            if actual != expected.lower():
                raise IntegrityError(
                    f"File hash doesn't match for {filename}: expected {expected.lower()}, got {actual}"
                )
            if os.path.exists(dest):
                raise AlreadyExistsError(f"{filename} already exists in {directory}")
            os.replace(part, dest)
        except BaseException:
            if os.path.exists(part):
                os.remove(part)
            raise

        return actual


def _content_length(res: httpx.Response, file: FileRecord) -> Optional[int]:
    header = res.headers.get("content-length")
    if header and header.isdigit():
        return int(header)
    if file.size_kb:
        return int(file.size_kb * 1024)
    return None
