import pytest

from scenecast.ai_generation.normalizer import (
    SourceKind,
    audio_reference,
    extract_image_url,
    image_edit_reference,
    image_reference_from_text,
)
from scenecast.common.errors import NormalizationError


@pytest.mark.parametrize(
    "text",
    [
        "See https://cdn.example/page and ![img](https://cdn.example/out.png)",
        "![img](https://cdn.example/out.png) then https://cdn.example/page",
    ],
)
def test_png_link_preferred_regardless_of_order(text):
    assert extract_image_url(text) == "https://cdn.example/out.png"


def test_falls_back_to_last_link_without_image_suffix():
    text = "first https://a.example/one then <https://b.example/two>."
    assert extract_image_url(text) == "https://b.example/two"


def test_trailing_punctuation_and_quotes_are_stripped():
    assert extract_image_url('"https://x.example/pic.JPEG",') == "https://x.example/pic.JPEG"


def test_no_link_fails():
    with pytest.raises(NormalizationError, match="no image link found"):
        extract_image_url("I could not draw that, sorry.")


def test_image_text_reference_infers_extension():
    reference = image_reference_from_text("Done: https://cdn.example/a/b.webp?sig=1")
    assert reference.source_kind is SourceKind.REMOTE_URL
    assert reference.extension == "webp"


def test_image_text_reference_defaults_to_png():
    reference = image_reference_from_text("https://cdn.example/render/12345")
    assert reference.extension == "png"


def test_inline_image_data_url():
    reference = image_reference_from_text("data:image/jpeg;base64,AAAA")
    assert reference.source_kind is SourceKind.INLINE_ENCODED
    assert reference.extension == "jpeg"


def test_image_edit_prefers_chat_content():
    payload = {
        "choices": [{"message": {"content": "Here: https://edit.example/scene.png"}}],
        "output": {"results": [{"url": "https://other.example/ignored.png"}]},
    }
    assert image_edit_reference(payload).payload == "https://edit.example/scene.png"


def test_image_edit_falls_back_to_results_shape():
    payload = {"output": {"results": [{"url": "https://edit.example/r.jpg"}]}}
    reference = image_edit_reference(payload)
    assert reference.payload == "https://edit.example/r.jpg"
    assert reference.extension == "jpg"


def test_image_edit_chat_content_without_link_uses_results():
    payload = {
        "choices": [{"message": {"content": "working on it"}}],
        "output": {"results": [{"url": "https://edit.example/r.png"}]},
    }
    assert image_edit_reference(payload).payload == "https://edit.example/r.png"


def test_image_edit_without_usable_shape_fails():
    with pytest.raises(NormalizationError):
        image_edit_reference({"choices": [], "output": {"results": []}})


def test_inline_wav_audio():
    reference = audio_reference({"output": {"audio": {"data": "", "audio": "data:audio/wav;base64,SGVsbG8="}}})
    assert reference.source_kind is SourceKind.INLINE_ENCODED
    assert reference.extension == "wav"
    assert reference.payload == "data:audio/wav;base64,SGVsbG8="


def test_audio_url_extension_from_suffix():
    reference = audio_reference({"output": {"audio": {"url": "http://x/y/clip.ogg"}}})
    assert reference.source_kind is SourceKind.REMOTE_URL
    assert reference.extension == "ogg"


def test_audio_field_holding_url_is_remote():
    reference = audio_reference({"data": {"audio": "https://tts.example/a.m4a"}})
    assert reference.source_kind is SourceKind.REMOTE_URL
    assert reference.extension == "m4a"


def test_declared_format_used_for_bare_base64():
    reference = audio_reference({"output": {"audio_data": "SGVsbG8=", "format": "wav"}})
    assert reference.extension == "wav"


def test_audio_url_without_known_suffix_uses_declared_format_then_mp3():
    assert audio_reference({"results": [{"url": "https://t.example/x", "audio_format": "aac"}]}).extension == "aac"
    assert audio_reference({"results": [{"url": "https://t.example/x"}]}).extension == "mp3"


def test_audio_shape_precedence():
    payload = {
        "output": {
            "audio": {"url": "https://t.example/first.wav"},
            "url": "https://t.example/second.wav",
            "results": [{"url": "https://t.example/third.wav"}],
        },
        "data": {"url": "https://t.example/fourth.wav"},
    }
    assert audio_reference(payload).payload == "https://t.example/first.wav"

    del payload["output"]["audio"]
    assert audio_reference(payload).payload == "https://t.example/second.wav"

    del payload["output"]["url"]
    assert audio_reference(payload).payload == "https://t.example/third.wav"

    del payload["output"]
    assert audio_reference(payload).payload == "https://t.example/fourth.wav"


def test_top_level_results_searched_last():
    payload = {"data": {"status": "ok"}, "results": [{"note": "none"}, {"audio_url": "https://t.example/z.mp3"}]}
    assert audio_reference(payload).payload == "https://t.example/z.mp3"


@pytest.mark.parametrize("payload", [{}, {"output": {"audio": {"data": ""}}}, None, ["not", "a", "dict"]])
def test_missing_audio_fails(payload):
    with pytest.raises(NormalizationError, match="no audio data returned"):
        audio_reference(payload)


def test_unsafe_extensions_fall_back_to_defaults():
    traversal = audio_reference({"output": {"audio": {"audio": "data:audio/x/../y;base64,SGVsbG8="}}})
    assert traversal.extension == "mp3"
    assert audio_reference({"output": {"audio_data": "SGVsbG8=", "format": "../wav"}}).extension == "mp3"
    assert image_reference_from_text("data:image/svg+xml;base64,AAAA").extension == "png"
