"""Runtime settings for modelup.

Values are resolved from explicit arguments first, then the environment
(``MODELUP_API_URL``, ``MODELUP_API_KEY``, ``MODELUP_FORMAT``), then the
credentials file at ``~/.modelup/credentials``, then defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

SAFETENSOR_FORMAT = "safetensor"
PICKLE_FORMAT = "pickle"
SUPPORTED_FORMATS = (SAFETENSOR_FORMAT, PICKLE_FORMAT)

DEFAULT_API_BASE = "https://civitai.com/api/v1"

MODEL_FILE_EXTENSIONS = (".safetensors", ".ckpt", ".pt")

# Relative to the working directory; matches the Stable Diffusion WebUI layout.
DEFAULT_TARGETS = (
    os.path.join("models", "hypernetworks"),
    os.path.join("models", "Lora"),
    os.path.join("models", "Stable-diffusion"),
    os.path.join("models", "VAE"),
    "embeddings",
)


@dataclass
class Settings:
    """Resolved configuration for a run."""

    api_base: str = DEFAULT_API_BASE
    api_key: Optional[str] = None
    preferred_format: str = SAFETENSOR_FORMAT
    extensions: tuple[str, ...] = field(default=MODEL_FILE_EXTENSIONS)
    timeout: float = 20.0
    download_timeout: float = 120.0
    max_retries: int = 3
    backoff_base: float = 0.5


def validate_format(value: str) -> str:
    """Normalise a file-format preference, rejecting unknown values."""
    fmt = value.strip().lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ConfigurationError(
            f"Unknown format '{value}'. Expected one of: {', '.join(SUPPORTED_FORMATS)}"
        )
    return fmt


def _credentials_path() -> str:
    return os.path.expanduser("~/.modelup/credentials")


def _read_api_key_file() -> str:
    """Read the API key from the credentials file (JSON or legacy ``key=value``)."""
    path = _credentials_path()
    if not os.path.exists(path):
        return ""
    with open(path) as f:
        raw = f.read().strip()
    if not raw:
        return ""
    try:
        data = json.loads(raw)
        return str(data.get("api_key", "")) if isinstance(data, dict) else ""
    except (json.JSONDecodeError, ValueError):
        for line in raw.splitlines():
            if line.startswith("api_key="):
                return line.split("=", 1)[1].strip()
    return ""


def get_api_key() -> str:
    """Return the catalog API key from the environment or credentials file."""
    key = os.environ.get("MODELUP_API_KEY", "")
    if not key:
        try:
            key = _read_api_key_file()
        except OSError as exc:
            logger.warning("Could not read %s: %s", _credentials_path(), exc)
            key = ""
    return key


def load_settings(
    api_base: Optional[str] = None,
    preferred_format: Optional[str] = None,
) -> Settings:
    """Build :class:`Settings` from arguments, environment and defaults.

    Raises
    ------
    ConfigurationError
        If the preferred format is not ``safetensor`` or ``pickle``.
    """
    base = api_base or os.environ.get("MODELUP_API_URL") or DEFAULT_API_BASE
    fmt = preferred_format or os.environ.get("MODELUP_FORMAT") or SAFETENSOR_FORMAT
    settings = Settings(
        api_base=base.rstrip("/"),
        api_key=get_api_key() or None,
        preferred_format=validate_format(fmt),
    )
    logger.debug("Loaded settings: api_base=%s format=%s", settings.api_base, settings.preferred_format)
    return settings
