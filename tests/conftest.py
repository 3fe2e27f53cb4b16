from __future__ import annotations

import json
from typing import Any, Callable

import pytest

from scenecast.common.config import GenerationSettings, ProviderSettings
from scenecast.progress import ProgressHub
from scenecast.storage import ArtifactStore


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, content: bytes = b"") -> None:
        self.status_code = status_code
        self._payload = payload
        self.content = content

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        if self._payload is not None:
            return json.dumps(self._payload)
        return self.content.decode("utf-8", errors="ignore")

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None


class FakeSession:
    """Stands in for requests.Session; replies come from a queue or a callable."""

    def __init__(self, responses: list[Any] | Callable[..., Any] | None = None) -> None:
        self._responses = responses if responses is not None else []
        self.headers: dict[str, str] = {}
        self.posts: list[dict[str, Any]] = []
        self.gets: list[str] = []
        self.closed = False

    def _next(self, **call: Any) -> FakeResponse:
        if callable(self._responses):
            reply = self._responses(**call)
        else:
            reply = self._responses.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def post(self, url: str, *, json: Any = None, headers: Any = None, timeout: Any = None) -> FakeResponse:
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return self._next(url=url, json=json)

    def get(self, url: str, *, timeout: Any = None) -> FakeResponse:
        self.gets.append(url)
        return self._next(url=url)

    def __enter__(self) -> "FakeSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.closed = True


@pytest.fixture
def hub() -> ProgressHub:
    return ProgressHub()


@pytest.fixture
def download_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def store(tmp_path, download_session) -> ArtifactStore:
    return ArtifactStore(tmp_path / "generated", session_factory=lambda: download_session)


@pytest.fixture
def settings() -> GenerationSettings:
    return GenerationSettings(
        llm=ProviderSettings(model="gpt-4o-mini", base_url="https://llm.example", api_key="llm-key"),
        image=ProviderSettings(model="gpt-4o-image", base_url="https://img.example/", api_key="img-key"),
        voice=ProviderSettings(
            model="qwen3-tts-flash",
            base_url="https://tts.example",
            api_key="tts-key",
            voice="Cherry",
            language="Chinese",
        ),
    )


@pytest.fixture
def recorded_sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps) -> Callable[[float], None]:
    return recorded_sleeps.append
