"""
Error taxonomy shared by the SceneCast generation pipeline.

Every failure raised by the pipeline derives from :class:`GenerationError` and
carries the HTTP status a web collaborator should answer with.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for failures raised while generating an artifact."""

    http_status = 500


class ConfigurationError(GenerationError, ValueError):
    """Provider configuration is missing or invalid. Never retried."""

    http_status = 400


class ProviderError(GenerationError):
    """
    Transient failure talking to an external provider (network error, non-success status).
    """

    http_status = 502

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RetryExhaustedError(ProviderError):
    """Raised once every attempt allowed by a retry policy has failed."""

    def __init__(self, attempts: int, last_error: BaseException, *, label: str = "call") -> None:
        super().__init__(f"{label} still failing after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class NormalizationError(GenerationError, ValueError):
    """The provider response did not contain a recognizable artifact reference."""

    http_status = 502


class MaterializationError(GenerationError):
    """Downloading, decoding, or writing an artifact failed."""


class DeadlineExceeded(GenerationError, TimeoutError):
    """The run's deadline elapsed or the run was cancelled."""

    http_status = 504


class InvalidRequestError(GenerationError, ValueError):
    """The request itself cannot be generated (e.g. nothing to narrate)."""

    http_status = 400
