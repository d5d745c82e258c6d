"""Gemini vision provider implementation."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from google import genai
from google.genai import errors, types

from visual_trigger_engine.errors import ProviderRequestError
from visual_trigger_engine.models import Detection, TriggerDefinition
from visual_trigger_engine.providers.prompts import build_prompt, parse_response
from visual_trigger_engine.providers.provider import DetectionProvider

logger = logging.getLogger(__name__)


class GeminiVisionProvider(DetectionProvider):
    """Google Gemini provider; fast and cheap enough for per-cycle use."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gemini-2.0-flash",
        timeout_seconds: float | None = None,
        client: genai.Client | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Gemini API key is required")

        self.model = model
        http_options = (
            types.HttpOptions(timeout=int(timeout_seconds * 1000)) if timeout_seconds else None
        )
        self.client = client or genai.Client(api_key=api_key, http_options=http_options)

        logger.info("Gemini vision provider initialized", extra={"model": self.model})

    def detect(self, frame: bytes, cues: Sequence[TriggerDefinition]) -> list[Detection]:
        if not cues:
            return []

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=[
                    build_prompt(cues),
                    types.Part.from_bytes(data=frame, mime_type="image/jpeg"),
                ],
                config=types.GenerateContentConfig(
                    temperature=0.0,
                    response_mime_type="application/json",
                ),
            )
        except errors.APIError as e:
            raise ProviderRequestError(self.name, str(e), status_code=e.code) from e

        return parse_response(response.text, cues, provider=self.name)
