"""
Image generation through an OpenAI-compatible chat-completions endpoint.

These providers answer with free-form text that mentions (somewhere) a link to
the rendered image; :func:`image_reference_from_text` digs it out.
"""

from __future__ import annotations

import logging
from typing import Any

from scenecast.common.config import ProviderSettings
from scenecast.common.errors import NormalizationError, ProviderError
from scenecast.common.llm import CompletionCallable, call_chat_completion

logger = logging.getLogger(__name__)


class ChatImageClient:
    """
    Ask a chat-completions image model for one picture and return its raw reply text.

    Parameters
    ----------
    settings:
        Provider model, base URL, and API key; ``size``/``quality`` are forwarded when set.
    completion_fn:
        Optional replacement for :func:`call_chat_completion`. Mainly useful for testing.
    """

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        completion_fn: CompletionCallable | None = None,
    ) -> None:
        self._settings = settings
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion

    @property
    def endpoint(self) -> str:
        return f"{self._settings.endpoint_base}/v1/chat/completions"

    def build_request(self, prompt: str) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": f"openai/{self._settings.model}",
            "messages": [{"role": "user", "content": prompt}],
            "api_key": self._settings.api_key,
            "api_base": f"{self._settings.endpoint_base}/v1",
            "n": 1,
        }
        extra_body = {
            key: value
            for key, value in (("size", self._settings.size), ("quality", self._settings.quality))
            if value
        }
        if extra_body:
            request["extra_body"] = extra_body
        return request

    def request_image(self, prompt: str, *, timeout: float | None = None) -> str:
        """
        Run one completion and return the reply text.

        Raises :class:`ProviderError` for transport/API failures and
        :class:`NormalizationError` when the reply has no message content.
        """
        logger.info("Requesting image from %s (model=%s).", self.endpoint, self._settings.model)
        try:
            result = self._completion_fn(timeout=timeout, **self.build_request(prompt))
        except RuntimeError as exc:
            raise NormalizationError(f"Image service returned no content: {exc}") from exc
        except Exception as exc:
            raise ProviderError(f"Image service request failed: {exc}") from exc

        if not result.text:
            raise NormalizationError("Image service returned no content.")
        return result.text
