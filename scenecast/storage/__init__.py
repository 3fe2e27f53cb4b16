"""
Durable storage for generated artifacts.
"""

from .materializer import (
    ArtifactStore,
    MediaKind,
    StoredArtifact,
    decode_inline_payload,
    filename_stem,
)

__all__ = [
    "ArtifactStore",
    "MediaKind",
    "StoredArtifact",
    "decode_inline_payload",
    "filename_stem",
]
