"""
Artifact Naming
===============

Generated images are named::

    <sanitized prompt, 20 chars>_<md5(prompt)[:10]>_<UTC timestamp>.<ext>

e.g. ``a_red_cube_3f2b9c0d1e_2024-05-01T12-30-45-123Z.png``. The hash keeps
prompts that share a sanitized prefix apart; the timestamp carries no ``:``
or ``.`` so the name is valid on every filesystem. Names are reproducible
from (prompt, timestamp).
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import WriteError
from .providers.base import resolve_image_format


logger = logging.getLogger("gemini-image-mcp.naming")

PREFIX_LENGTH = 20
HASH_LENGTH = 10
FALLBACK_PREFIX = "image"

_UNSAFE_CHARS = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ArtifactName:
    directory: Path
    filename: str

    @property
    def path(self) -> Path:
        return self.directory / self.filename


def sanitize(prompt: str) -> str:
    """Drop non-word characters and join words with underscores."""
    cleaned = _UNSAFE_CHARS.sub("", prompt).strip()
    return _WHITESPACE.sub("_", cleaned)


def prompt_hash(prompt: str) -> str:
    return hashlib.md5(prompt.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def format_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with millisecond precision and no ':' or '.'."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    iso = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    return re.sub(r"[:.]", "-", iso)


def generate_filename(prompt: str, extension: str = "png", now: Optional[datetime] = None) -> str:
    prefix = sanitize(prompt)[:PREFIX_LENGTH].strip("_") or FALLBACK_PREFIX
    return f"{prefix}_{prompt_hash(prompt)}_{format_timestamp(now)}.{extension.lstrip('.')}"


def name_artifact(
    prompt: str,
    directory: Path,
    data: bytes = b"",
    mime_type: Optional[str] = None,
    filename: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ArtifactName:
    """Pick the file an image will be written to.

    An explicit ``filename`` is used as-is; otherwise one is generated with
    an extension taken from the image bytes, falling back to ``mime_type``.
    """
    if filename:
        return ArtifactName(Path(directory), filename)
    extension = resolve_image_format(data, mime_type).extension
    return ArtifactName(Path(directory), generate_filename(prompt, extension, now))


def write_artifact(name: ArtifactName, data: bytes) -> Path:
    """Write image bytes. A failed write may leave a partial file behind."""
    path = name.path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        logger.error(f"Failed to save image to {path}: {e}")
        raise WriteError(str(path), e.strerror or str(e)) from e
    logger.info(f"Saved image to {path} ({len(data)} bytes)")
    return path
