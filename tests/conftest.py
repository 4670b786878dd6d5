"""Shared fakes for modelup tests."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest

from modelup.catalog import CatalogGateway, FileRecord, ModelRecord, VersionRecord
from modelup.errors import NotFoundError, UserCancelled
from modelup.prompts import VersionSelector

T0 = datetime(2023, 5, 1, 12, 0, tzinfo=timezone.utc)


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def make_version(
    version_id: int,
    name: str,
    *,
    model_id: int = 7,
    hours: int = 0,
    files: Optional[list[FileRecord]] = None,
) -> VersionRecord:
    return VersionRecord(
        id=version_id,
        model_id=model_id,
        name=name,
        published_at=T0 + timedelta(hours=hours),
        files=files or [],
    )


class FakeCatalog(CatalogGateway):
    """In-memory catalog keyed by digest and model id."""

    name = "fake"

    def __init__(self) -> None:
        self.by_hash: dict[str, VersionRecord] = {}
        self.models: dict[int, ModelRecord] = {}
        self.hash_lookups: list[str] = []
        self.model_lookups: list[int] = []

    def add_model(self, model_id: int, name: str, versions: list[VersionRecord]) -> ModelRecord:
        model = ModelRecord(id=model_id, name=name, versions=versions)
        self.models[model_id] = model
        return model

    def add_file(self, data: bytes, version: VersionRecord) -> str:
        digest = sha256(data)
        self.by_hash[digest] = version
        return digest

    def get_version_by_hash(self, digest: str) -> VersionRecord:
        self.hash_lookups.append(digest)
        try:
            return self.by_hash[digest]
        except KeyError:
            raise NotFoundError(f"Not found: {digest}") from None

    def get_model(self, model_id: int) -> ModelRecord:
        self.model_lookups.append(model_id)
        try:
            return self.models[model_id]
        except KeyError:
            raise NotFoundError(f"Not found: model {model_id}") from None


class ScriptedSelector(VersionSelector):
    """Replays canned answers and records every prompt."""

    def __init__(
        self,
        confirms: Sequence[bool] = (),
        choices: Sequence[Sequence[str]] = (),
        cancel: bool = False,
    ) -> None:
        self._confirms = list(confirms)
        self._choices = [list(c) for c in choices]
        self._cancel = cancel
        self.prompts: list[str] = []
        self.options: list[list[str]] = []

    def confirm(self, message: str) -> bool:
        self.prompts.append(message)
        if self._cancel:
            raise UserCancelled("Interrupted")
        return self._confirms.pop(0)

    def choose_many(self, message: str, options: Sequence[str]) -> list[str]:
        self.prompts.append(message)
        self.options.append(list(options))
        if self._cancel:
            raise UserCancelled("Interrupted")
        return self._choices.pop(0)


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()
