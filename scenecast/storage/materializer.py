"""
Write generated artifacts under the generated-content root and retire stale ones.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import requests

from scenecast.ai_generation.normalizer import ArtifactReference
from scenecast.common.errors import MaterializationError
from scenecast.common.http import SessionFactory, download_bytes

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class MediaKind(str, Enum):
    """Artifact families, each mapped 1:1 to a route prefix and a subdirectory."""

    IMAGE = "images"
    AUDIO = "audio"

    @property
    def url_prefix(self) -> str:
        return f"/generated/{self.value}/"


@dataclass(frozen=True)
class StoredArtifact:
    relative_url: str
    absolute_path: Path


def filename_stem(prefix: str, index: int, now: float | None = None) -> str:
    """
    ``<prefix>_<NN>_<unix seconds>`` with a 1-based, zero-padded ordinal.
    """
    timestamp = int(time.time() if now is None else now)
    return f"{prefix}_{index + 1:02d}_{timestamp}"


def decode_inline_payload(payload: str) -> bytes:
    """
    Decode base64 data, tolerating a ``data:...;base64,`` prefix and line breaks.
    """
    encoded = payload.strip()
    if encoded.startswith("data:") and "," in encoded:
        encoded = encoded.split(",", 1)[1]
    encoded = _WHITESPACE.sub("", encoded)
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MaterializationError(f"Failed to decode base64 artifact data: {exc}") from exc


class ArtifactStore:
    """
    Filesystem home for generated images and audio.

    Parameters
    ----------
    root:
        Generated-content root; images land in ``root/images`` and audio in ``root/audio``.
    session_factory:
        Builds the short-lived :class:`requests.Session` used per download. Mainly
        useful for testing.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        session_factory: SessionFactory = requests.Session,
    ) -> None:
        self._root = Path(root).expanduser().resolve()
        self._session_factory = session_factory

    @property
    def root(self) -> Path:
        return self._root

    def directory(self, media: MediaKind) -> Path:
        return self._root / media.value

    def materialize(
        self,
        reference: ArtifactReference,
        media: MediaKind,
        stem: str,
        *,
        timeout: float | None = None,
    ) -> StoredArtifact:
        """
        Turn ``reference`` into ``<root>/<media>/<stem>.<extension>`` and return both paths.
        """
        target_dir = self.directory(media)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise MaterializationError(f"Cannot create {target_dir}: {exc}") from exc

        filename = f"{stem}.{reference.extension}"
        target = target_dir / filename

        if reference.is_remote:
            data = download_bytes(
                reference.payload,
                timeout=timeout,
                session_factory=self._session_factory,
            )
        else:
            data = decode_inline_payload(reference.payload)

        try:
            target.write_bytes(data)
        except OSError as exc:
            raise MaterializationError(f"Cannot write artifact to {target}: {exc}") from exc

        logger.info("Stored %d bytes at %s.", len(data), target)
        return StoredArtifact(relative_url=media.url_prefix + filename, absolute_path=target)

    def resolve(self, relative_url: str, media: MediaKind) -> Path | None:
        """
        Map a relative URL under ``media``'s route prefix back to a file below the root.
        """
        if not relative_url or not relative_url.startswith(media.url_prefix):
            return None
        filename = relative_url[len(media.url_prefix):]
        if not filename:
            return None
        directory = self.directory(media)
        candidate = (directory / filename).resolve()
        if candidate.parent != directory.resolve():
            logger.warning("Refusing to resolve %s outside %s.", relative_url, directory)
            return None
        return candidate

    def retire(self, relative_url: str | None, media: MediaKind) -> bool:
        """
        Best-effort removal of a superseded artifact. Never raises.
        """
        path = self.resolve(relative_url or "", media)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("Stale artifact %s already gone.", path)
            return False
        except OSError as exc:
            logger.warning("Failed to delete stale artifact %s: %s", path, exc)
            return False
        logger.info("Retired stale artifact %s.", path)
        return True
