"""
Provider configuration for the generation pipeline.

Settings come from a YAML/JSON mapping, then ``SCENECAST_<SECTION>_<FIELD>``
environment variables override individual values.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigurationError

DEFAULT_IMAGE_MODEL = "gpt-4o-image"
DEFAULT_IMAGE_EDIT_MODEL = "qwen-image-edit"
DEFAULT_GENERATED_ROOT = "generated"

BACKEND_OPENAI = "openai"
BACKEND_REPLICATE = "replicate"
_BACKENDS = {BACKEND_OPENAI, BACKEND_REPLICATE}

ENV_PREFIX = "SCENECAST"

# Mapping keys accepted for each field, camelCase first as written by the web UI.
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "model": ("model",),
    "base_url": ("baseUrl", "base_url"),
    "api_key": ("apiKey", "api_key"),
    "size": ("size",),
    "quality": ("quality",),
    "voice": ("voice",),
    "language": ("language",),
    "backend": ("backend",),
}

# Flat keys from older config files, per section.
_LEGACY_KEYS: dict[str, dict[str, str]] = {
    "llm": {"model": "llmModel", "base_url": "llmBaseUrl", "api_key": "llmApiKey"},
    "image": {
        "model": "imageModel",
        "base_url": "imageBaseUrl",
        "api_key": "imageApiKey",
        "size": "imageSize",
        "quality": "imageQuality",
    },
}

_SECTION_KEYS = {
    "llm": ("llm",),
    "image": ("image",),
    "image_edit": ("imageEdit", "image_edit"),
    "voice": ("voice",),
}

_SECTION_LABELS = {
    "llm": "LLM",
    "image": "image",
    "image_edit": "image edit",
    "voice": "voice",
}


@dataclass(frozen=True)
class ProviderSettings:
    """Connection details for one external provider."""

    model: str = ""
    base_url: str = ""
    api_key: str = ""
    size: str = ""
    quality: str = ""
    voice: str = ""
    language: str = ""
    backend: str = BACKEND_OPENAI

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ProviderSettings":
        if not data:
            return cls()
        values: dict[str, str] = {}
        for name, aliases in _FIELD_ALIASES.items():
            for alias in aliases:
                raw = data.get(alias)
                if raw is not None and str(raw).strip():
                    values[name] = str(raw).strip()
                    break
        return cls(**values)

    @property
    def endpoint_base(self) -> str:
        return self.base_url.strip().rstrip("/")

    def with_fallback(self, other: "ProviderSettings", *, default_model: str = "") -> "ProviderSettings":
        """
        Fill an empty model, base URL, or API key from ``other``.

        Replicate sections are returned unchanged: they authenticate with their own
        token and must not inherit an OpenAI-compatible host.
        """
        if self.backend == BACKEND_REPLICATE:
            return self
        return replace(
            self,
            model=self.model.strip() or default_model,
            base_url=self.base_url.strip() or other.base_url,
            api_key=self.api_key.strip() or other.api_key,
        )

    def require(self, section: str) -> "ProviderSettings":
        """
        Raise :class:`ConfigurationError` naming the first missing value.
        """
        label = _SECTION_LABELS.get(section, section)
        if self.backend not in _BACKENDS:
            raise ConfigurationError(f"Unsupported {label} backend '{self.backend}'.")
        if not self.model.strip():
            raise ConfigurationError(f"No {label} model configured.")
        if self.backend == BACKEND_OPENAI and not self.endpoint_base:
            raise ConfigurationError(f"No {label} base URL configured.")
        if not self.api_key.strip():
            raise ConfigurationError(f"No {label} API key configured.")
        return self


@dataclass(frozen=True)
class GenerationSettings:
    llm: ProviderSettings = field(default_factory=ProviderSettings)
    image: ProviderSettings = field(default_factory=ProviderSettings)
    image_edit: ProviderSettings = field(default_factory=ProviderSettings)
    voice: ProviderSettings = field(default_factory=ProviderSettings)
    generated_root: str = DEFAULT_GENERATED_ROOT

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "GenerationSettings":
        data = data or {}
        sections: dict[str, ProviderSettings] = {}
        for section, keys in _SECTION_KEYS.items():
            raw = next((data[key] for key in keys if isinstance(data.get(key), Mapping)), None)
            settings = ProviderSettings.from_mapping(raw)
            sections[section] = _apply_legacy_keys(settings, data, _LEGACY_KEYS.get(section, {}))

        root = data.get("generatedRoot") or data.get("generated_root") or DEFAULT_GENERATED_ROOT
        return cls(generated_root=str(root), **sections)

    def resolved_image(self) -> ProviderSettings:
        return self.image.with_fallback(self.llm, default_model=DEFAULT_IMAGE_MODEL)

    def resolved_image_edit(self) -> ProviderSettings:
        """
        Edit settings, inheriting from the image section.

        With a Replicate image backend and no edit section of its own, the
        Replicate model also handles reference images.
        """
        image = self.resolved_image()
        if image.backend == BACKEND_REPLICATE:
            if self.image_edit == ProviderSettings():
                return image
            image = self.llm
        return self.image_edit.with_fallback(image, default_model=DEFAULT_IMAGE_EDIT_MODEL)

    def resolved_voice(self) -> ProviderSettings:
        return self.voice


def _apply_legacy_keys(
    settings: ProviderSettings,
    data: Mapping[str, Any],
    legacy: Mapping[str, str],
) -> ProviderSettings:
    updates: dict[str, str] = {}
    for name, key in legacy.items():
        raw = data.get(key)
        if not getattr(settings, name) and raw is not None and str(raw).strip():
            updates[name] = str(raw).strip()
    return replace(settings, **updates) if updates else settings


def apply_env_overrides(
    settings: GenerationSettings,
    environ: Mapping[str, str] | None = None,
) -> GenerationSettings:
    """
    Override values from ``SCENECAST_IMAGE_API_KEY``-style environment variables.
    """
    env = os.environ if environ is None else environ
    updates: dict[str, Any] = {}
    for section in _SECTION_KEYS:
        current: ProviderSettings = getattr(settings, section)
        overrides: dict[str, str] = {}
        for provider_field in fields(ProviderSettings):
            key = f"{ENV_PREFIX}_{section.upper()}_{provider_field.name.upper()}"
            value = env.get(key)
            if value is not None and value.strip():
                overrides[provider_field.name] = value.strip()
        if overrides:
            updates[section] = replace(current, **overrides)

    root = env.get(f"{ENV_PREFIX}_GENERATED_ROOT")
    if root and root.strip():
        updates["generated_root"] = root.strip()
    return replace(settings, **updates) if updates else settings


def load_settings(
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> GenerationSettings:
    """
    Load settings from a YAML or JSON file (or only the environment when ``path`` is None).
    """
    data: Mapping[str, Any] = {}
    if path is not None:
        data = _load_mapping_file(Path(path))
    return apply_env_overrides(GenerationSettings.from_mapping(data), environ)


def _load_mapping_file(path: Path) -> Mapping[str, Any]:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError("Unsupported settings file format. Use YAML or JSON.")

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("Settings file must deserialize to a mapping.")
    return data
