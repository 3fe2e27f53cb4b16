import pytest

from scenecast.pipeline import GenerationKind, GenerationRequest, scene_speech_text
from scenecast.storage import MediaKind


def test_kind_routes_media_and_prefix():
    assert GenerationKind.CHARACTER.media is MediaKind.IMAGE
    assert GenerationKind.CHARACTER.filename_prefix == "character"
    assert GenerationKind.SCENE_IMAGE.filename_prefix == "scene"
    assert GenerationKind.SCENE_AUDIO.media is MediaKind.AUDIO


def test_request_rejects_negative_index():
    with pytest.raises(ValueError):
        GenerationRequest(GenerationKind.CHARACTER, -1, "x")


def test_reference_images_become_tuple():
    request = GenerationRequest(GenerationKind.SCENE_IMAGE, 0, "x", reference_images=["a", "b"])
    assert request.reference_images == ("a", "b")


@pytest.mark.parametrize(
    ("fields", "expected"),
    [
        ({"narration": " Night fell. ", "dialogues": ["Hi"], "title": "T"}, "Night fell."),
        ({"narration": "  ", "dialogues": ["Run!", "Where?"], "description": "d"}, "Run! Where?"),
        ({"dialogues": [], "description": "A dark alley.", "title": "T"}, "A dark alley."),
        ({"title": " Chapter One "}, "Chapter One"),
        ({}, ""),
    ],
)
def test_scene_speech_text_priority(fields, expected):
    assert scene_speech_text(**fields) == expected
