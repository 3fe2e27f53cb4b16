import pytest

from scenecast.ai_generation import ChatImageClient
from scenecast.common import llm
from scenecast.common.config import ProviderSettings
from scenecast.common.errors import NormalizationError, ProviderError
from scenecast.common.llm import call_chat_completion


def test_call_chat_completion_disables_litellm_retries(monkeypatch):
    captured = {}

    def fake_completion(**kwargs):
        captured.update(kwargs)
        return {"choices": [{"message": {"content": "  ![img](https://x/a.png)  "}}]}

    monkeypatch.setattr(llm, "completion", fake_completion)

    result = call_chat_completion(
        model="openai/gpt-4o-image",
        messages=[{"role": "user", "content": "hi"}],
        api_base="https://img.example/v1",
        timeout=30,
    )

    assert result.text == "![img](https://x/a.png)"
    assert captured["num_retries"] == 0
    assert captured["timeout"] == 30
    assert "api_key" not in captured


def test_call_chat_completion_rejects_unexpected_shape(monkeypatch):
    monkeypatch.setattr(llm, "completion", lambda **kwargs: {"choices": []})
    with pytest.raises(RuntimeError):
        call_chat_completion(model="m", messages=[])


def test_build_request_forwards_size_and_quality():
    client = ChatImageClient(
        ProviderSettings(model="gpt-image-1", base_url="https://img.example/", api_key="k", size="1024x1024")
    )
    request = client.build_request("a lighthouse")
    assert request["model"] == "openai/gpt-image-1"
    assert request["api_base"] == "https://img.example/v1"
    assert request["extra_body"] == {"size": "1024x1024"}


def test_request_image_maps_failures():
    settings = ProviderSettings(model="m", base_url="https://img.example", api_key="k")

    def broken(**kwargs):
        raise ConnectionError("reset by peer")

    def malformed(**kwargs):
        raise RuntimeError("Unexpected LiteLLM response format.")

    with pytest.raises(ProviderError, match="reset by peer"):
        ChatImageClient(settings, completion_fn=broken).request_image("p")
    with pytest.raises(NormalizationError):
        ChatImageClient(settings, completion_fn=malformed).request_image("p")
