"""Unit tests for cloud prompt construction and response parsing."""

from __future__ import annotations

from visual_trigger_engine.models import TriggerDefinition
from visual_trigger_engine.providers.prompts import build_prompt, parse_response

WAVE = TriggerDefinition(id="1", label="wave", query="person waving at the camera")
THUMBS = TriggerDefinition(id="2", label="thumbs_up")


def test_single_prompt_uses_query() -> None:
    prompt = build_prompt([WAVE])
    assert '"person waving at the camera"' in prompt
    assert '"detected"' in prompt


def test_batch_prompt_lists_every_cue() -> None:
    prompt = build_prompt([WAVE, THUMBS])
    assert '1. "person waving at the camera"' in prompt
    assert '2. "thumbs_up"' in prompt


def test_single_detected_response() -> None:
    text = '{"detected": true, "confidence": 0.91, "explanation": "hand up"}'
    [detection] = parse_response(text, [WAVE], provider="test")
    assert detection.label == "wave"
    assert detection.confidence == 0.91


def test_single_not_detected_yields_nothing() -> None:
    text = '{"detected": false, "confidence": 0.2}'
    assert parse_response(text, [WAVE], provider="test") == []


def test_markdown_fenced_response() -> None:
    text = 'Here you go:\n```json\n{"detected": true, "confidence": 0.8}\n```'
    assert len(parse_response(text, [WAVE], provider="test")) == 1


def test_batch_response_wrapped_in_object() -> None:
    text = (
        '{"detections": ['
        '{"label": "person waving at the camera", "detected": true, "confidence": 0.9},'
        '{"label": "thumbs_up", "detected": false, "confidence": 0.1}'
        "]}"
    )
    detections = parse_response(text, [WAVE, THUMBS], provider="test")
    assert [(d.label, d.confidence) for d in detections] == [("wave", 0.9)]


def test_array_inside_prose() -> None:
    text = 'I found: [{"label": "thumbs_up", "confidence": 0.97}] in the image.'
    [detection] = parse_response(text, [THUMBS], provider="test")
    assert detection.label == "thumbs_up"


def test_malformed_responses_fail_soft() -> None:
    assert parse_response("", [WAVE], provider="test") == []
    assert parse_response(None, [WAVE], provider="test") == []
    assert parse_response("not json at all", [WAVE], provider="test") == []
    assert parse_response('{"detected": "yes", "confidence": 0.9}', [WAVE], provider="test") == []
    assert parse_response('{"something": "else"}', [WAVE, THUMBS], provider="test") == []


def test_out_of_range_and_unknown_labels_are_dropped() -> None:
    text = (
        '[{"label": "thumbs_up", "confidence": 1.7},'
        ' {"label": "dancing", "confidence": 0.9},'
        ' {"label": "wave", "confidence": 0.75}]'
    )
    detections = parse_response(text, [WAVE, THUMBS], provider="test")
    assert [(d.label, d.confidence) for d in detections] == [("wave", 0.75)]
