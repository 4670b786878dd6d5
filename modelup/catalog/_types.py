"""Catalog records: models, versions and the files attached to them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ..errors import CatalogError

# Catalog format tags mapped onto the names accepted by ``--format``.
_FORMAT_ALIASES = {
    "safetensor": "safetensor",
    "safetensors": "safetensor",
    "pickletensor": "pickle",
    "pickle": "pickle",
}


def normalize_format(tag: Optional[str]) -> str:
    """Lower-case a catalog format tag and fold known aliases."""
    if not tag:
        return ""
    key = tag.strip().lower()
    return _FORMAT_ALIASES.get(key, key)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str) and value:
        try:
            ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise CatalogError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise CatalogError(f"Missing timestamp: {value!r}")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class FileRecord:
    """A downloadable file belonging to a version."""

    name: str
    download_url: str
    format: str = ""
    primary: bool = False
    sha256: str = ""
    size_kb: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileRecord":
        hashes = data.get("hashes") or {}
        metadata = data.get("metadata") or {}
        url = data.get("downloadUrl")
        if not url:
            raise CatalogError(f"File {data.get('name')!r} has no download URL")
        return cls(
            name=str(data.get("name") or ""),
            download_url=str(url),
            format=normalize_format(metadata.get("format") or data.get("format")),
            primary=bool(data.get("primary", False)),
            sha256=str(hashes.get("SHA256") or "").lower(),
            size_kb=data.get("sizeKB"),
        )


@dataclass
class VersionRecord:
    """An immutable, timestamped release of a model."""

    id: int
    model_id: int
    name: str
    published_at: datetime
    files: list[FileRecord] = field(default_factory=list)
    model_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], model_id: Optional[int] = None) -> "VersionRecord":
        """Build a record from a catalog payload.

        Version entries nested in a model payload omit ``modelId``; pass the
        parent's id as *model_id* in that case.
        """
        try:
            version_id = int(data["id"])
            owner = int(data["modelId"]) if data.get("modelId") is not None else model_id
        except (KeyError, TypeError, ValueError) as exc:
            raise CatalogError(f"Malformed version payload: {exc}") from exc
        if owner is None:
            raise CatalogError(f"Version {version_id} has no model id")

        model = data.get("model") or {}
        return cls(
            id=version_id,
            model_id=int(owner),
            name=str(data.get("name") or version_id),
            published_at=parse_timestamp(data.get("publishedAt") or data.get("createdAt")),
            files=[FileRecord.from_dict(f) for f in data.get("files") or []],
            model_name=model.get("name"),
        )


@dataclass
class ModelRecord:
    """A logical model and all of its published versions."""

    id: int
    name: str
    versions: list[VersionRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelRecord":
        try:
            model_id = int(data["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise CatalogError(f"Malformed model payload: {exc}") from exc
        return cls(
            id=model_id,
            name=str(data.get("name") or model_id),
            versions=[
                VersionRecord.from_dict(v, model_id=model_id)
                for v in data.get("modelVersions") or []
            ],
        )
