"""
Common utilities shared across SceneCast modules.
"""

from .config import GenerationSettings, ProviderSettings, apply_env_overrides, load_settings
from .errors import (
    ConfigurationError,
    DeadlineExceeded,
    GenerationError,
    InvalidRequestError,
    MaterializationError,
    NormalizationError,
    ProviderError,
    RetryExhaustedError,
)
from .llm import ChatResult, CompletionCallable, call_chat_completion

__all__ = [
    "ChatResult",
    "CompletionCallable",
    "call_chat_completion",
    "ConfigurationError",
    "DeadlineExceeded",
    "GenerationError",
    "GenerationSettings",
    "InvalidRequestError",
    "MaterializationError",
    "NormalizationError",
    "ProviderError",
    "ProviderSettings",
    "RetryExhaustedError",
    "apply_env_overrides",
    "load_settings",
]
