"""
End-to-end orchestration of character, scene image, and scene audio generation.
"""

from .coordinator import DEFAULT_TIMEOUT, GenerationCoordinator
from .models import BatchItem, BatchOutcome, GenerationKind, GenerationRequest, scene_speech_text
from .retry import Deadline, RetryPolicy, linear_backoff, with_retry

__all__ = [
    "BatchItem",
    "BatchOutcome",
    "DEFAULT_TIMEOUT",
    "Deadline",
    "GenerationCoordinator",
    "GenerationKind",
    "GenerationRequest",
    "RetryPolicy",
    "linear_backoff",
    "scene_speech_text",
    "with_retry",
]
