import base64

import pytest
import replicate

from scenecast.ai_generation import ReplicateImageClient, normalize_image_outputs, replicate_service
from scenecast.ai_generation.normalizer import SourceKind, image_reference_from_text
from scenecast.ai_generation.replicate_service import build_replicate_input
from scenecast.common.config import GenerationSettings, ProviderSettings
from scenecast.common.errors import ProviderError


class FakeReplicateClient:
    def __init__(self, output=None, error=None):
        self.output = output
        self.error = error
        self.calls = []

    def run(self, model, input):
        self.calls.append((model, input))
        if self.error:
            raise self.error
        return self.output


def test_normalize_image_outputs_variants():
    assert normalize_image_outputs(None) == []
    assert normalize_image_outputs("https://x/a.png") == ["https://x/a.png"]
    assert normalize_image_outputs(list("https://x/b.png")) == ["https://x/b.png"]
    assert normalize_image_outputs([b"https://x/c.png", ["https://x/d.png"]]) == [
        "https://x/c.png",
        "https://x/d.png",
    ]


def test_flux_kontext_input_uses_input_image():
    payload = build_replicate_input(
        model_identifier="Black-Forest-Labs/flux-kontext-pro:abc123",
        prompt="a hero",
        reference_image="data:image/png;base64,AAAA",
    )
    assert payload["input_image"] == "data:image/png;base64,AAAA"
    assert payload["aspect_ratio"] == "1:1"


def test_default_input_for_unknown_model():
    assert build_replicate_input(model_identifier="owner/model", prompt="p") == {
        "prompt": "p",
        "output_format": "png",
    }


def test_request_image_joins_outputs():
    client = FakeReplicateClient(output=["https://r/a.png", "https://r/b.png"])
    service = ReplicateImageClient(ProviderSettings(model="owner/model", api_key="r8"), client=client)
    assert service.request_image("p") == "https://r/a.png\nhttps://r/b.png"
    assert client.calls == [("owner/model", {"prompt": "p", "output_format": "png"})]


def test_request_image_wraps_failures():
    client = FakeReplicateClient(error=RuntimeError("quota"))
    service = ReplicateImageClient(ProviderSettings(model="owner/model", api_key="r8"), client=client)
    with pytest.raises(ProviderError, match="quota"):
        service.request_image("p")


def test_file_outputs_are_read_as_urls():
    from replicate.helpers import FileOutput

    api = replicate.Client(api_token="x")
    outputs = [
        FileOutput("https://replicate.delivery/a.png", client=api),
        FileOutput("https://replicate.delivery/b.png", client=api),
    ]
    assert normalize_image_outputs(outputs) == [
        "https://replicate.delivery/a.png",
        "https://replicate.delivery/b.png",
    ]
    assert normalize_image_outputs(outputs[0]) == ["https://replicate.delivery/a.png"]


def test_request_image_with_file_output_yields_inline_reference():
    from replicate.helpers import FileOutput

    encoded = "data:image/png;base64," + base64.b64encode(b"\x89PNG\r\n\x1a\nrealimagebytes").decode("ascii")
    client = FakeReplicateClient(output=FileOutput(encoded, client=replicate.Client(api_token="x")))
    service = ReplicateImageClient(ProviderSettings(model="owner/model", api_key="r8"), client=client)

    text = service.request_image("p", reference_image="data:image/png;base64,AAAA")

    assert text == encoded
    reference = image_reference_from_text(text)
    assert reference.source_kind is SourceKind.INLINE_ENCODED
    assert client.calls[0][1]["image"] == "data:image/png;base64,AAAA"


def test_client_uses_only_its_own_token_and_host(monkeypatch):
    built = []
    monkeypatch.setattr(replicate_service.replicate, "Client", lambda **kwargs: built.append(kwargs) or object())
    settings = GenerationSettings(
        llm=ProviderSettings(model="gpt-4o-mini", base_url="https://llm.example", api_key="llm-key"),
        image=ProviderSettings(model="owner/painter", api_key="r8", backend="replicate"),
    )

    ReplicateImageClient(settings.resolved_image())

    assert built == [{"api_token": "r8"}]
