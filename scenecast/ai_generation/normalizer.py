"""
Turn heterogeneous provider responses into concrete artifact references.

Providers disagree on where (and how) they put the generated image or audio.
Everything here is pure: the same response always yields the same reference or
the same :class:`NormalizationError`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, Mapping, Sequence

from scenecast.common.errors import NormalizationError

logger = logging.getLogger(__name__)

IMAGE_URL_PATTERN = re.compile(r"https?://[^\s)]+")
IMAGE_SUFFIXES: Sequence[str] = (".png", ".jpg", ".jpeg", ".webp")
AUDIO_SUFFIXES: Sequence[str] = (".mp3", ".wav", ".ogg", ".m4a", ".aac")

DEFAULT_IMAGE_EXTENSION = "png"
DEFAULT_AUDIO_EXTENSION = "mp3"

_URL_TRIM_CHARS = "[]()<>\"'`.,"
_IMAGE_DATA_URL_PATTERN = re.compile(r"^data:image/([^;]+);base64,")
_AUDIO_DATA_URL_PATTERN = re.compile(r"^data:audio/([^;]+);base64,")
# Extensions end up in filenames.
_SAFE_EXTENSION = re.compile(r"[a-z0-9]+")
_AUDIO_FORMAT_KEYS = ("format", "audio_format", "audioExt")
_INLINE_AUDIO_KEYS = ("audio", "audio_data")
_AUDIO_URL_KEYS = ("audio_url", "url")


class SourceKind(str, Enum):
    REMOTE_URL = "remote_url"
    INLINE_ENCODED = "inline_encoded"


@dataclass(frozen=True)
class ArtifactReference:
    """Where the generated bytes live, plus the file extension to store them under."""

    source_kind: SourceKind
    payload: str
    extension: str

    @property
    def is_remote(self) -> bool:
        return self.source_kind is SourceKind.REMOTE_URL


# --------------------------------------------------------------------------- images


def extract_image_url(text: str) -> str:
    """
    Find the most plausible image link inside free-form response text.

    Links carrying a known image suffix win in order of appearance; otherwise the
    last link found is returned.
    """
    matches = IMAGE_URL_PATTERN.findall(text or "")
    if not matches:
        raise NormalizationError("no image link found")

    for candidate in matches:
        cleaned = candidate.strip(_URL_TRIM_CHARS)
        lowered = cleaned.lower()
        if any(suffix in lowered for suffix in IMAGE_SUFFIXES):
            return cleaned

    return matches[-1].strip(_URL_TRIM_CHARS)


def image_reference_from_text(text: str) -> ArtifactReference:
    """
    Build a reference from chat-completion text that either is an image data URL or mentions one.
    """
    content = (text or "").strip()
    data_match = _IMAGE_DATA_URL_PATTERN.match(content.lower())
    if data_match:
        return ArtifactReference(
            source_kind=SourceKind.INLINE_ENCODED,
            payload=content,
            extension=_normalize_extension(data_match.group(1), DEFAULT_IMAGE_EXTENSION),
        )
    return _remote_image_reference(extract_image_url(content))


def image_edit_reference(payload: Any) -> ArtifactReference:
    """
    Extract the image produced by an image-edit provider.

    The chat-completion shape (``choices[0].message.content``) is tried first and
    the ``output.results[0].url`` shape second.
    """
    if not isinstance(payload, Mapping):
        raise NormalizationError("image edit service returned a non-object response")

    content = _chat_content(payload)
    if content is not None:
        try:
            return image_reference_from_text(content)
        except NormalizationError:
            if content.strip().lower().startswith("http"):
                return _remote_image_reference(content.strip())

    output = _as_mapping(payload.get("output"))
    results = output.get("results") if output else None
    if isinstance(results, list) and results:
        first = _as_mapping(results[0])
        url = first.get("url") if first else None
        if isinstance(url, str) and url.strip():
            return _remote_image_reference(url.strip())

    raise NormalizationError("image edit service returned no usable image URL")


def image_suffix_extension(url: str, fallback: str = DEFAULT_IMAGE_EXTENSION) -> str:
    lowered = url.lower()
    for suffix in IMAGE_SUFFIXES:
        if suffix in lowered:
            return suffix.lstrip(".")
    return _normalize_extension(fallback, DEFAULT_IMAGE_EXTENSION)


def _remote_image_reference(url: str) -> ArtifactReference:
    return ArtifactReference(
        source_kind=SourceKind.REMOTE_URL,
        payload=url,
        extension=image_suffix_extension(url),
    )


def _chat_content(payload: Mapping[str, Any]) -> str | None:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    message = _as_mapping(_as_mapping(choices[0]).get("message"))
    content = message.get("content")
    return content if isinstance(content, str) else None


# --------------------------------------------------------------------------- audio

ShapeMatcher = Callable[[Mapping[str, Any]], Iterator[Mapping[str, Any]]]


def _output_audio_shape(payload: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    audio = _as_mapping(_as_mapping(payload.get("output")).get("audio"))
    if audio:
        yield audio


def _output_shape(payload: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    output = _as_mapping(payload.get("output"))
    if output:
        yield output


def _output_results_shape(payload: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    yield from _mapping_items(_as_mapping(payload.get("output")).get("results"))


def _data_shape(payload: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    data = _as_mapping(payload.get("data"))
    if data:
        yield data


def _results_shape(payload: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    yield from _mapping_items(payload.get("results"))


# Priority order matters: the first shape holding audio wins.
AUDIO_SHAPES: Sequence[tuple[str, ShapeMatcher]] = (
    ("output.audio", _output_audio_shape),
    ("output", _output_shape),
    ("output.results[]", _output_results_shape),
    ("data", _data_shape),
    ("results[]", _results_shape),
)


def audio_reference(payload: Any) -> ArtifactReference:
    """
    Locate the synthesized audio inside a text-to-speech provider response.
    """
    if not isinstance(payload, Mapping):
        raise NormalizationError("no audio data returned")

    for tag, matcher in AUDIO_SHAPES:
        for candidate in matcher(payload):
            reference = audio_reference_from_mapping(candidate)
            if reference is not None:
                logger.debug("Audio found under '%s' (%s).", tag, reference.source_kind.value)
                return reference

    raise NormalizationError("no audio data returned")


def audio_reference_from_mapping(candidate: Mapping[str, Any]) -> ArtifactReference | None:
    """
    Read one candidate object: inline ``audio``/``audio_data`` first, then ``audio_url``/``url``.
    """
    declared = _first_string(candidate, _AUDIO_FORMAT_KEYS)
    fallback = declared.strip().lstrip(".") if declared and declared.strip() else DEFAULT_AUDIO_EXTENSION

    inline = _first_string(candidate, _INLINE_AUDIO_KEYS)
    if inline and inline.strip():
        source = inline.strip()
        if source.lower().startswith(("http://", "https://")):
            return ArtifactReference(
                source_kind=SourceKind.REMOTE_URL,
                payload=source,
                extension=audio_extension_from_url(source, fallback),
            )
        return ArtifactReference(
            source_kind=SourceKind.INLINE_ENCODED,
            payload=source,
            extension=audio_extension_from_data(source, fallback),
        )

    url = _first_string(candidate, _AUDIO_URL_KEYS)
    if url and url.strip():
        source = url.strip()
        return ArtifactReference(
            source_kind=SourceKind.REMOTE_URL,
            payload=source,
            extension=audio_extension_from_url(source, fallback),
        )

    return None


def audio_extension_from_data(data: str, fallback: str = DEFAULT_AUDIO_EXTENSION) -> str:
    match = _AUDIO_DATA_URL_PATTERN.match(data.strip().lower())
    if match and _SAFE_EXTENSION.fullmatch(match.group(1)):
        return match.group(1)
    return _normalize_extension(fallback, DEFAULT_AUDIO_EXTENSION)


def audio_extension_from_url(url: str, fallback: str = DEFAULT_AUDIO_EXTENSION) -> str:
    lowered = url.lower()
    for suffix in AUDIO_SUFFIXES:
        if suffix in lowered:
            return suffix.lstrip(".")
    return _normalize_extension(fallback, DEFAULT_AUDIO_EXTENSION)


# --------------------------------------------------------------------------- helpers


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _mapping_items(value: Any) -> Iterator[Mapping[str, Any]]:
    if isinstance(value, list):
        for item in value:
            if isinstance(item, Mapping):
                yield item


def _first_string(candidate: Mapping[str, Any], keys: Sequence[str]) -> str | None:
    for key in keys:
        value = candidate.get(key)
        if isinstance(value, str):
            return value
    return None


def _normalize_extension(extension: str | None, default: str) -> str:
    cleaned = (extension or "").strip().lstrip(".").lower()
    return cleaned if _SAFE_EXTENSION.fullmatch(cleaned) else default
