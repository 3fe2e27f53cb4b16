"""
Scene illustration through an image-edit model that accepts character references.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import requests

from scenecast.common.config import ProviderSettings
from scenecast.common.http import post_json

logger = logging.getLogger(__name__)

_BODY_LOG_PREVIEW = 1000


class ImageEditClient:
    """
    Send reference images plus an instruction to an image-edit model.

    The raw JSON reply is returned untouched; its layout differs between vendors
    and is resolved by :func:`image_edit_reference`.
    """

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
        return f"{self._settings.endpoint_base}/v1/chat/completions"

    def build_body(self, prompt: str, reference_images: Sequence[str]) -> dict[str, Any]:
        content: list[dict[str, Any]] = [
            {"type": "image_url", "image_url": {"url": image}} for image in reference_images
        ]
        content.append({"type": "text", "text": prompt})
        return {
            "model": self._settings.model,
            "messages": [{"role": "user", "content": content}],
        }

    def request_edit(
        self,
        prompt: str,
        reference_images: Sequence[str],
        *,
        timeout: float | None = None,
    ) -> Any:
        body = self.build_body(prompt, reference_images)
        logger.info(
            "Requesting image edit from %s (model=%s, references=%d).",
            self.endpoint,
            self._settings.model,
            len(reference_images),
        )
        logger.debug("Image edit prompt: %s", prompt[:_BODY_LOG_PREVIEW])
        return post_json(
            self.endpoint,
            api_key=self._settings.api_key,
            body=body,
            timeout=timeout,
            session=self._session,
        )
