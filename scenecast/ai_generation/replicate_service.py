"""
Integration with Replicate as an alternate image backend.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable as IterableABC
from typing import Any, Callable

import replicate

from scenecast.common.config import ProviderSettings
from scenecast.common.errors import ProviderError

logger = logging.getLogger(__name__)


def _build_default_input(*, prompt: str, reference_image: str | None) -> dict[str, Any]:
    payload: dict[str, Any] = {"prompt": prompt, "output_format": "png"}
    if reference_image:
        payload["image"] = reference_image
    return payload


def _build_flux_kontext_input(*, prompt: str, reference_image: str | None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "prompt": prompt,
        "output_format": "png",
        "safety_tolerance": 2,
        "aspect_ratio": "1:1",
    }
    if reference_image:
        payload["input_image"] = reference_image
    return payload


_MODEL_INPUT_BUILDERS: dict[str, Callable[..., dict[str, Any]]] = {
    "black-forest-labs/flux-kontext-pro": _build_flux_kontext_input,
    "black-forest-labs/flux-kontext-max": _build_flux_kontext_input,
}


def build_replicate_input(
    *,
    model_identifier: str,
    prompt: str,
    reference_image: str | None = None,
) -> dict[str, Any]:
    normalized_identifier = model_identifier.strip().lower()
    builder = _MODEL_INPUT_BUILDERS.get(normalized_identifier)
    if builder is None and ":" in normalized_identifier:
        base_identifier = normalized_identifier.split(":", maxsplit=1)[0]
        builder = _MODEL_INPUT_BUILDERS.get(base_identifier)
    builder = builder or _build_default_input
    return builder(prompt=prompt, reference_image=reference_image)


class ReplicateImageClient:
    """
    Convenience wrapper around the Replicate client for character and scene images.

    Parameters
    ----------
    settings:
        ``model`` is the ``owner/model[:version]`` identifier, ``api_key`` the Replicate
        token; a non-empty ``base_url`` points the client at a different API host.
    client:
        Optional pre-configured :class:`replicate.Client`. Mainly useful for testing.
    """

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        client: replicate.Client | None = None,
    ) -> None:
        self._settings = settings
        if client is None:
            client_kwargs: dict[str, Any] = {"api_token": settings.api_key}
            if settings.endpoint_base:
                client_kwargs["base_url"] = settings.endpoint_base
            client = replicate.Client(**client_kwargs)
        self._client = client

    @property
    def model_identifier(self) -> str:
        return self._settings.model

    def request_image(self, prompt: str, *, reference_image: str | None = None) -> str:
        """
        Run the model and return its outputs as newline-separated text.
        """
        replicate_input = build_replicate_input(
            model_identifier=self._settings.model,
            prompt=prompt,
            reference_image=reference_image,
        )
        logger.info("Running Replicate model %s.", self._settings.model)
        try:
            outputs = self._client.run(self._settings.model, input=replicate_input)
        except Exception as exc:
            raise ProviderError(f"Replicate run failed: {exc}") from exc
        return "\n".join(normalize_image_outputs(outputs))


def normalize_image_outputs(raw: Any) -> list[str]:
    """
    Normalize the image outputs returned by Replicate into a list of URL strings.
    """

    if raw is None:
        return []

    if isinstance(raw, str):
        return [raw]

    if isinstance(raw, bytes):
        return [raw.decode("utf-8", errors="ignore")]

    # replicate>=1.0 wraps each file in a FileOutput; iterating one streams the file bytes.
    url = _output_url(raw)
    if url is not None:
        return [url]

    if isinstance(raw, IterableABC):
        collected = list(raw)
        if not collected:
            return []

        if all(isinstance(item, str) and len(item) == 1 for item in collected):
            return ["".join(collected)]

        normalized: list[str] = []
        for item in collected:
            if isinstance(item, str):
                normalized.append(item)
            elif isinstance(item, bytes):
                normalized.append(item.decode("utf-8", errors="ignore"))
            elif isinstance(item, IterableABC) or _output_url(item) is not None:
                normalized.extend(normalize_image_outputs(item))
            elif item is not None:
                normalized.append(str(item))
        return normalized

    return [str(raw)]


def _output_url(item: Any) -> str | None:
    url = getattr(item, "url", None)
    if isinstance(url, str) and url.strip():
        return url.strip()
    return None
