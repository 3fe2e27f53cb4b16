"""
Provider clients and response normalization for SceneCast artifact generation.
"""

from .chat_image import ChatImageClient
from .image_edit import ImageEditClient
from .normalizer import (
    ArtifactReference,
    SourceKind,
    audio_reference,
    extract_image_url,
    image_edit_reference,
    image_reference_from_text,
)
from .replicate_service import ReplicateImageClient, normalize_image_outputs
from .speech import SpeechClient

__all__ = [
    "ArtifactReference",
    "ChatImageClient",
    "ImageEditClient",
    "ReplicateImageClient",
    "SourceKind",
    "SpeechClient",
    "audio_reference",
    "extract_image_url",
    "image_edit_reference",
    "image_reference_from_text",
    "normalize_image_outputs",
]
