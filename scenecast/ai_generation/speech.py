"""
Text-to-speech requests against a DashScope-style multimodal generation endpoint.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from scenecast.common.config import ProviderSettings
from scenecast.common.http import post_json

logger = logging.getLogger(__name__)

SPEECH_PATH = "/api/v1/services/aigc/multimodal-generation/generation"


class SpeechClient:
    def __init__(
        self,
        settings: ProviderSettings,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._session = session

    @property
    def endpoint(self) -> str:
        return self._settings.endpoint_base + SPEECH_PATH

    def build_body(self, text: str) -> dict[str, Any]:
        speech_input: dict[str, Any] = {"text": text}
        if self._settings.voice:
            speech_input["voice"] = self._settings.voice
        if self._settings.language:
            speech_input["language_type"] = self._settings.language
        return {"model": self._settings.model, "input": speech_input}

    def synthesize(self, text: str, *, timeout: float | None = None) -> Any:
        """Return the provider's raw JSON reply for ``text``."""
        logger.info(
            "Requesting speech from %s (model=%s, chars=%d).",
            self.endpoint,
            self._settings.model,
            len(text),
        )
        return post_json(
            self.endpoint,
            api_key=self._settings.api_key,
            body=self.build_body(text),
            timeout=timeout,
            session=self._session,
        )
