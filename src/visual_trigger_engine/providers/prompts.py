"""Prompt construction and response parsing shared by the cloud providers.

Vendors differ in transport, not in what we ask: a single cue gets a yes/no
question with a confidence, several cues get one batched question answered as
a JSON array.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

from visual_trigger_engine.models import Detection, TriggerDefinition

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


def build_prompt(cues: Sequence[TriggerDefinition]) -> str:
    if len(cues) == 1:
        return _single_prompt(cues[0])
    return _batch_prompt(cues)


def _single_prompt(cue: TriggerDefinition) -> str:
    return (
        f'Analyze this image and determine if it contains: "{cue.effective_query}"\n'
        "\n"
        "Respond ONLY with valid JSON in this exact format:\n"
        "{\n"
        '  "detected": true or false,\n'
        '  "confidence": 0.0 to 1.0,\n'
        '  "explanation": "brief explanation of what you see"\n'
        "}\n"
        "\n"
        "Be precise and objective. Only set detected to true if you clearly see the "
        "requested element."
    )


def _batch_prompt(cues: Sequence[TriggerDefinition]) -> str:
    listing = "\n".join(f'{i}. "{cue.effective_query}"' for i, cue in enumerate(cues, start=1))
    return (
        "Analyze this image and check for ALL of the following elements:\n"
        "\n"
        f"{listing}\n"
        "\n"
        'Respond ONLY with a JSON object of the form {"detections": [...]} where each item is\n'
        '{"label": "exact query text", "detected": true/false, "confidence": 0.0-1.0, '
        '"explanation": "brief description"}\n'
        "\n"
        "Include an entry for EACH query, even if not detected (confidence: 0)."
    )


def _strip_fences(text: str) -> str:
    match = _FENCED_JSON.search(text)
    return (match.group(1) if match else text).strip()


def _valid_confidence(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    confidence = float(value)
    if not 0.0 <= confidence <= 1.0:
        return None
    return confidence


def parse_response(
    text: str | None, cues: Sequence[TriggerDefinition], *, provider: str
) -> list[Detection]:
    """Turn a model response into detections labelled with cue labels.

    Malformed responses are logged and yield an empty list.
    """

    if not text or not text.strip():
        logger.warning("Empty response from vision provider", extra={"provider": provider})
        return []

    body = _strip_fences(text)
    try:
        parsed: Any = json.loads(body)
    except json.JSONDecodeError:
        # Some models wrap the array in prose.
        match = _JSON_ARRAY.search(body)
        if match is None:
            logger.warning(
                "Failed to parse vision response", extra={"provider": provider, "body": body[:200]}
            )
            return []
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.warning(
                "Failed to parse vision response", extra={"provider": provider, "body": body[:200]}
            )
            return []

    if isinstance(parsed, dict) and len(cues) == 1 and "detected" in parsed:
        return _parse_single(parsed, cues[0], provider=provider)

    items = _as_items(parsed)
    if items is None:
        logger.warning(
            "Unexpected vision response shape", extra={"provider": provider, "body": body[:200]}
        )
        return []
    return _parse_items(items, cues, provider=provider)


def _parse_single(obj: dict[str, Any], cue: TriggerDefinition, *, provider: str) -> list[Detection]:
    detected = obj.get("detected")
    confidence = _valid_confidence(obj.get("confidence"))
    if not isinstance(detected, bool) or confidence is None:
        logger.warning(
            "Invalid detection response",
            extra={"provider": provider, "label": cue.label, "detected": detected},
        )
        return []

    logger.debug(
        "Vision provider answered",
        extra={
            "provider": provider,
            "label": cue.label,
            "detected": detected,
            "confidence": confidence,
            "explanation": obj.get("explanation"),
        },
    )
    if not detected:
        return []
    return [Detection(label=cue.label, confidence=confidence)]


def _as_items(parsed: Any) -> list[Any] | None:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in ("detections", "results"):
            value = parsed.get(key)
            if isinstance(value, list):
                return value
    return None


def _parse_items(
    items: list[Any], cues: Sequence[TriggerDefinition], *, provider: str
) -> list[Detection]:
    by_text: dict[str, TriggerDefinition] = {}
    for cue in cues:
        by_text[cue.label.lower()] = cue
        by_text[cue.effective_query.lower()] = cue

    out: list[Detection] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        # Batched answers may omit "detected"; treat presence of a label as a claim.
        if item.get("detected") is False:
            continue
        confidence = _valid_confidence(item.get("confidence"))
        label_raw = item.get("label")
        if confidence is None or not isinstance(label_raw, str):
            continue
        cue = by_text.get(label_raw.strip().strip('"').lower())
        if cue is None:
            logger.debug(
                "Ignoring detection for unknown label",
                extra={"provider": provider, "label": label_raw},
            )
            continue
        out.append(Detection(label=cue.label, confidence=confidence))
    return out
