"""Civitai catalog backend.

Looks up model versions by file hash and models by id through the public
REST API::

    GET {api_base}/model-versions/by-hash/{sha256}
    GET {api_base}/models/{model_id}
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ..config import Settings
from ..errors import CatalogError, NotFoundError, TransportError
from ._types import ModelRecord, VersionRecord
from .base import CatalogGateway

logger = logging.getLogger(__name__)

# Status codes that are safe to retry (server-side transient errors).
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}


def create_http_client(settings: Settings) -> httpx.Client:
    """Build the shared HTTP client used for catalog calls and downloads."""
    headers = {"User-Agent": "modelup"}
    if settings.api_key:
        headers["Authorization"] = f"Bearer {settings.api_key}"
    return httpx.Client(
        headers=headers,
        timeout=httpx.Timeout(settings.timeout, read=settings.download_timeout),
        follow_redirects=True,
    )


class CivitaiCatalog(CatalogGateway):
    """Catalog gateway backed by the Civitai REST API."""

    name = "civitai"

    def __init__(
        self,
        client: httpx.Client,
        api_base: str = "https://civitai.com/api/v1",
        *,
        max_retries: int = 3,
        backoff_base: float = 0.5,
    ) -> None:
        self._client = client
        self.api_base = api_base.rstrip("/")
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    @classmethod
    def from_settings(cls, client: httpx.Client, settings: Settings) -> "CivitaiCatalog":
        return cls(
            client,
            settings.api_base,
            max_retries=settings.max_retries,
            backoff_base=settings.backoff_base,
        )

    def _get_json(self, path: str) -> Any:
        """GET *path* with exponential backoff retry and return the JSON body.

        Retries on connection errors and retryable HTTP status codes
        (502, 503, 504, 429). A 404 raises :class:`NotFoundError`; other
        client errors are raised immediately.
        """
        url = f"{self.api_base}{path}"
        for attempt in range(self.max_retries):
            try:
                res = self._client.get(url)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError) as exc:
                if attempt < self.max_retries - 1:
                    wait = self.backoff_base * (2**attempt)
                    logger.warning(
                        "Connection error on GET %s: %s (attempt %d/%d, waiting %.1fs)",
                        url,
                        exc,
                        attempt + 1,
                        self.max_retries,
                        wait,
                    )
                    time.sleep(wait)
                    continue
                raise TransportError(
                    f"Request failed after {self.max_retries} attempts: {exc}"
                ) from exc
            except httpx.HTTPError as exc:
                raise TransportError(f"Request to {url} failed: {exc}") from exc

            if res.status_code < 400:
                try:
                    return res.json()
                except ValueError as exc:
                    raise CatalogError(f"Invalid JSON from {url}") from exc

            if res.status_code == 404:
                raise NotFoundError(f"Not found: {path}")

            if res.status_code in _RETRYABLE_STATUS_CODES and attempt < self.max_retries - 1:
                wait = self.backoff_base * (2**attempt)
                logger.warning(
                    "Retryable HTTP %d on GET %s (attempt %d/%d, waiting %.1fs)",
                    res.status_code,
                    url,
                    attempt + 1,
                    self.max_retries,
                    wait,
                )
                time.sleep(wait)
                continue

            raise TransportError(
                f"HTTP {res.status_code} from {url}: {res.text.strip()[:200]}",
                status_code=res.status_code,
            )

        # Only reachable with max_retries < 1.
        raise TransportError(f"Request to {url} was not attempted")

    def get_version_by_hash(self, digest: str) -> VersionRecord:
        data = self._get_json(f"/model-versions/by-hash/{digest}")
        if not isinstance(data, dict):
            raise CatalogError(f"Unexpected payload for hash {digest}")
        version = VersionRecord.from_dict(data)
        logger.debug("Hash %s resolved to version %s of model %s", digest, version.id, version.model_id)
        return version

    def get_model(self, model_id: int) -> ModelRecord:
        data = self._get_json(f"/models/{model_id}")
        if not isinstance(data, dict):
            raise CatalogError(f"Unexpected payload for model {model_id}")
        return ModelRecord.from_dict(data)
