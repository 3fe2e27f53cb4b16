"""
SceneCast package exposing artifact generation, storage, and progress streaming.
"""

from .common import GenerationSettings, ProviderSettings, load_settings
from .pipeline import (
    BatchItem,
    BatchOutcome,
    Deadline,
    GenerationCoordinator,
    GenerationKind,
    GenerationRequest,
    RetryPolicy,
)
from .progress import ProgressEvent, ProgressHub
from .storage import ArtifactStore, StoredArtifact

__all__ = [
    "ArtifactStore",
    "BatchItem",
    "BatchOutcome",
    "Deadline",
    "GenerationCoordinator",
    "GenerationKind",
    "GenerationRequest",
    "GenerationSettings",
    "ProgressEvent",
    "ProgressHub",
    "ProviderSettings",
    "RetryPolicy",
    "StoredArtifact",
    "load_settings",
]
