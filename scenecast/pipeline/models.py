"""
Generation request model handed to the coordinator by its callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from scenecast.storage import MediaKind, StoredArtifact


class GenerationKind(str, Enum):
    CHARACTER = "character"
    SCENE_IMAGE = "scene_image"
    SCENE_AUDIO = "scene_audio"

    @property
    def media(self) -> MediaKind:
        return MediaKind.AUDIO if self is GenerationKind.SCENE_AUDIO else MediaKind.IMAGE

    @property
    def filename_prefix(self) -> str:
        return "character" if self is GenerationKind.CHARACTER else "scene"


@dataclass(frozen=True)
class GenerationRequest:
    """
    One artifact to generate for one entity.

    ``reference_images`` are data URLs (or generated-image URLs) of characters that
    should appear in a scene; when present the image-edit provider is used.
    ``prior_artifact_path`` is the entity's current relative URL, retired once the
    new artifact is stored.
    """

    kind: GenerationKind
    entity_index: int
    prompt: str
    reference_images: tuple[str, ...] = ()
    prior_artifact_path: str | None = None

    def __post_init__(self) -> None:
        if self.entity_index < 0:
            raise ValueError("entity_index must be non-negative.")
        if not isinstance(self.reference_images, tuple):
            object.__setattr__(self, "reference_images", tuple(self.reference_images))


def scene_speech_text(
    *,
    narration: str | None = None,
    dialogues: Sequence[str] | None = None,
    description: str | None = None,
    title: str | None = None,
) -> str:
    """
    Pick the text to narrate: narration, else the dialogues, else description, else title.
    """
    if narration and narration.strip():
        return narration.strip()
    if dialogues:
        joined = " ".join(dialogues).strip()
        if joined:
            return joined
    if description and description.strip():
        return description.strip()
    return (title or "").strip()


@dataclass(frozen=True)
class BatchItem:
    """
    One entry of a generate-all run. A blank prompt marks an entity without a
    description; it is reported and skipped.
    """

    request: GenerationRequest
    name: str = ""


@dataclass(frozen=True)
class BatchOutcome:
    position: int
    name: str
    artifact: StoredArtifact | None = None
    error: str | None = None
    skipped: bool = False

    @property
    def succeeded(self) -> bool:
        return self.artifact is not None
