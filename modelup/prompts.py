"""Interactive selection of versions to download.

:class:`ClickSelector` asks on the terminal; :class:`AutoSelector` answers
yes to everything for unattended runs. Either raises
:class:`~modelup.errors.UserCancelled` when the user interrupts, which
aborts the whole run.
"""

from __future__ import annotations

from typing import Optional, Sequence

import click

from .errors import UserCancelled


class VersionSelector:
    """Interface for asking the user what to do."""

    def confirm(self, message: str) -> bool:
        raise NotImplementedError

    def choose_many(self, message: str, options: Sequence[str]) -> list[str]:
        """Return the chosen subset of *options*, possibly empty."""
        raise NotImplementedError


def parse_selection(answer: str, count: int) -> Optional[list[int]]:
    """Parse ``"1,3"``, ``"2-4"``, ``"all"`` or ``""`` into 0-based indices.

    Returns None if *answer* is not a valid selection of ``1..count``.
    """
    answer = answer.strip().lower()
    if not answer or answer == "none":
        return []
    if answer == "all":
        return list(range(count))

    picked: list[int] = []
    for part in answer.replace(" ", ",").split(","):
        if not part:
            continue
        if "-" in part:
            lo, _, hi = part.partition("-")
            if not (lo.isdigit() and hi.isdigit()):
                return None
            rng = range(int(lo), int(hi) + 1)
        elif part.isdigit():
            rng = range(int(part), int(part) + 1)
        else:
            return None
        for n in rng:
            if not 1 <= n <= count:
                return None
            if n - 1 not in picked:
                picked.append(n - 1)
    return sorted(picked)


class ClickSelector(VersionSelector):
    """Terminal prompts built on click."""

    def confirm(self, message: str) -> bool:
        try:
            return click.confirm(message, default=False)
        except click.Abort as exc:
            raise UserCancelled("Interrupted") from exc

    def choose_many(self, message: str, options: Sequence[str]) -> list[str]:
        click.echo(message)
        for i, opt in enumerate(options, 1):
            click.echo(f"  {i}. {opt}")

        while True:
            try:
                answer = click.prompt(
                    "Select versions (e.g. 1,3 or 2-4, 'all', blank for none)",
                    default="",
                    show_default=False,
                )
            except click.Abort as exc:
                raise UserCancelled("Interrupted") from exc

            indices = parse_selection(answer, len(options))
            if indices is not None:
                return [options[i] for i in indices]
            click.echo(click.style(f"  Invalid selection: {answer}", fg="red"))


class AutoSelector(VersionSelector):
    """Accepts every prompt; used with ``--yes``."""

    def confirm(self, message: str) -> bool:
        return True

    def choose_many(self, message: str, options: Sequence[str]) -> list[str]:
        return list(options)
