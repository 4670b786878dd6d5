"""Drive a run: resolve targets, ask the user, fetch, clean up."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Iterable, Optional

import click

from .catalog import CatalogGateway, VersionRecord
from .config import MODEL_FILE_EXTENSIONS
from .errors import ModelupError, NotFoundError, UserCancelled
from .fetcher import Fetcher
from .hashing import file_digest
from .prompts import VersionSelector
from .resolver import DigestFn, Update, find_update, find_updates_in_dir

logger = logging.getLogger(__name__)

ARROW = "➜"


@dataclass
class RunSummary:
    """Counts of what happened to each model during a run."""

    updated: int = 0
    skipped: int = 0
    failed: int = 0
    up_to_date: int = 0
    not_found: int = 0


class Runner:
    """Sequential update run over files and directories.

    Recoverable errors are reported against the file or model they belong
    to and the run continues. :class:`UserCancelled` stops everything.

    Parameters
    ----------
    cancel:
        Checked between files and before each network round trip. Meant for
        callers that stop a run from another thread.
    remove_old:
        ``None`` asks before deleting the superseded file; ``True`` or
        ``False`` answers without asking.
    """

    def __init__(
        self,
        catalog: CatalogGateway,
        fetcher: Fetcher,
        selector: VersionSelector,
        *,
        extensions: Iterable[str] = MODEL_FILE_EXTENSIONS,
        digest: DigestFn = file_digest,
        cancel: Optional[threading.Event] = None,
        remove_old: Optional[bool] = None,
    ) -> None:
        self.catalog = catalog
        self.fetcher = fetcher
        self.selector = selector
        self.extensions = tuple(extensions)
        self.digest = digest
        self.cancel = cancel
        self.remove_old = remove_old
        self.summary = RunSummary()

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    def run(self, targets: Iterable[str]) -> RunSummary:
        """Process every target in order.

        Raises
        ------
        UserCancelled
            If the user interrupts a prompt or the cancel event is set.
        OSError
            If a target does not exist.
        """
        for target in targets:
            if not os.path.exists(target):
                raise FileNotFoundError(f"No such file or directory: {target}")
            if os.path.isdir(target):
                self.run_directory(target)
            else:
                self.run_file(target)
        return self.summary

    def run_file(self, path: str) -> None:
        name = os.path.basename(path)
        try:
            update = find_update(self.catalog, path, digest=self.digest, cancel=self.cancel)
        except NotFoundError:
            self.summary.not_found += 1
            click.echo(click.style(f"Model information is not found: {name}", fg="yellow"))
            return
        except UserCancelled:
            raise
        except (ModelupError, OSError) as exc:
            self._report_failure(name, exc)
            return

        self.apply(update, os.path.dirname(os.path.abspath(path)))

    def run_directory(self, directory: str) -> None:
        click.echo(f"{ARROW} {directory}")
        try:
            updates = find_updates_in_dir(
                self.catalog,
                directory,
                extensions=self.extensions,
                digest=self.digest,
                cancel=self.cancel,
            )
        except UserCancelled:
            raise
        except (ModelupError, OSError) as exc:
            self._report_failure(directory, exc)
            return

        if not updates:
            click.echo("No updates are found")
        for update in updates:
            self.apply(update, directory)

    # ------------------------------------------------------------------
    # Per-model state machine
    # ------------------------------------------------------------------

    def apply(self, update: Update, dest_dir: str) -> list[str]:
        """Offer *update* to the user and download what they pick.

        Returns the paths of the downloaded files.
        """
        candidates = update.candidates

        if not candidates:
            self.summary.up_to_date += 1
            click.echo(f"{update.model_name} has no updates")
            return []

        if len(candidates) == 1:
            label, version = next(iter(candidates.items()))
            click.echo(click.style(f"{update.model_name} has a newer version", fg="green"))
            if not self.selector.confirm(
                f"Do you want to update {update.current_version} {ARROW} {label}"
            ):
                self.summary.skipped += 1
                click.echo(click.style("Skipped downloading the newer model", fg="yellow"))
                return []
            chosen = [version]
        else:
            click.echo(click.style(f"{update.model_name} has multiple newer versions", fg="green"))
            labels = self.selector.choose_many(
                f"Which versions do you want to download (current: {update.current_version})",
                list(candidates),
            )
            if not labels:
                self.summary.skipped += 1
                click.echo(click.style("Skipped downloading any models", fg="yellow"))
                return []
            chosen = [candidates[label] for label in labels]

        downloaded = []
        for version in chosen:
            path = self._fetch(update, version, dest_dir)
            if path is not None:
                downloaded.append(path)

        if not downloaded:
            self.summary.failed += 1
            return []

        self.summary.updated += 1
        self._maybe_remove_old(update)
        return downloaded

    def _fetch(self, update: Update, version: VersionRecord, dest_dir: str) -> Optional[str]:
        self._check_cancel()
        try:
            path = self.fetcher.download(version, dest_dir)
        except UserCancelled:
            raise
        except (ModelupError, OSError) as exc:
            self._report_failure(f"{update.model_name} {version.name}", exc, count=False)
            return None
        click.echo(click.style(f"Downloaded {os.path.basename(path)}", fg="green"))
        return path

    def _maybe_remove_old(self, update: Update) -> None:
        for old in update.local_paths:
            if not os.path.exists(old):
                continue
            remove = self.remove_old
            if remove is None:
                remove = self.selector.confirm(
                    f"Do you want to remove the old version: {os.path.basename(old)}"
                )
            if not remove:
                continue
            try:
                os.remove(old)
            except OSError as exc:
                self._report_failure(os.path.basename(old), exc, count=False)
            else:
                logger.info("Removed %s", old)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_cancel(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise UserCancelled("Cancelled")

    def _report_failure(self, name: str, exc: BaseException, *, count: bool = True) -> None:
        if count:
            self.summary.failed += 1
        logger.debug("Failure for %s", name, exc_info=exc)
        click.echo(click.style(f"Failed to update {name}: {exc}", fg="red"), err=True)
