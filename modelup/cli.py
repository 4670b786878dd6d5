"""
modelup command-line interface.

Usage::

    modelup
    modelup models/Lora
    modelup models/Stable-diffusion/sd15.safetensors --format pickle
    modelup --yes --remove-old models/VAE
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import click

from . import __version__
from .catalog.civitai import CivitaiCatalog, create_http_client
from .config import DEFAULT_TARGETS, SUPPORTED_FORMATS, load_settings
from .errors import ConfigurationError, UserCancelled
from .fetcher import Fetcher
from .hashing import ProgressCallback, digest_with_progress
from .prompts import AutoSelector, ClickSelector
from .runner import Runner

logger = logging.getLogger(__name__)


@contextmanager
def _download_progress(filename: str, total: Optional[int]) -> Iterator[Optional[ProgressCallback]]:
    """Render a download progress bar when the size is known."""
    if not total:
        yield None
        return
    with click.progressbar(
        length=total,
        label=filename,
        file=click.get_text_stream("stderr"),
    ) as bar:
        yield bar.update


def _default_targets() -> list[str]:
    wd = os.getcwd()
    targets = []
    for t in DEFAULT_TARGETS:
        path = os.path.join(wd, t)
        if os.path.isdir(path):
            targets.append(path)
        else:
            logger.debug("Skipping missing default directory %s", path)
    return targets


@click.command()
@click.argument("paths", nargs=-1, type=click.Path())
@click.option(
    "--format",
    "preferred_format",
    type=click.Choice(SUPPORTED_FORMATS, case_sensitive=False),
    default=None,
    help="Preferred file format: safetensor or pickle (default: safetensor).",
)
@click.option(
    "--api-url",
    default=None,
    help="Catalog API base URL (default: $MODELUP_API_URL or https://civitai.com/api/v1).",
)
@click.option("--yes", "-y", is_flag=True, help="Download every newer version without asking.")
@click.option(
    "--remove-old/--keep-old",
    default=None,
    help="Delete or keep superseded files without asking.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="modelup")
def main(
    paths: tuple[str, ...],
    preferred_format: Optional[str],
    api_url: Optional[str],
    yes: bool,
    remove_old: Optional[bool],
    verbose: bool,
) -> None:
    """Check local model files for newer versions and download them.

    PATHS may be model files or directories. Without PATHS, the usual
    Stable Diffusion WebUI model folders under the current directory are
    scanned.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(api_base=api_url, preferred_format=preferred_format)
    except ConfigurationError as exc:
        raise click.BadParameter(str(exc), param_hint="--format") from exc

    targets = list(paths) or _default_targets()
    if not targets:
        click.echo("No model directories found. Pass a file or directory to check.")
        return

    if yes and remove_old is None:
        remove_old = False

    with create_http_client(settings) as client:
        runner = Runner(
            CivitaiCatalog.from_settings(client, settings),
            Fetcher(
                client,
                settings.preferred_format,
                progress=_download_progress,
            ),
            AutoSelector() if yes else ClickSelector(),
            extensions=settings.extensions,
            digest=digest_with_progress,
            remove_old=remove_old,
        )
        try:
            summary = runner.run(targets)
        except (UserCancelled, KeyboardInterrupt):
            click.echo(click.style("Cancelled", fg="red"), err=True)
            sys.exit(1)
        except OSError as exc:
            click.echo(click.style(f"Failed to check for updates: {exc}", fg="red"), err=True)
            sys.exit(1)

    logger.debug("Run summary: %s", summary)
    if summary.updated or summary.failed:
        click.echo(f"\n{summary.updated} updated, {summary.skipped} skipped, {summary.failed} failed")
