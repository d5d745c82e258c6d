"""OpenAI vision provider implementation."""

from __future__ import annotations

import base64
import logging
from collections.abc import Sequence

import openai
from openai import OpenAI

from visual_trigger_engine.errors import ProviderRequestError
from visual_trigger_engine.models import Detection, TriggerDefinition
from visual_trigger_engine.providers.prompts import build_prompt, parse_response
from visual_trigger_engine.providers.provider import DetectionProvider

logger = logging.getLogger(__name__)


class OpenAIVisionProvider(DetectionProvider):
    """OpenAI chat-completions provider using image input."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gpt-4o",
        timeout_seconds: float | None = None,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the OpenAI provider.

        Args:
            api_key: OpenAI API key.
            model: Vision-capable chat model.
            timeout_seconds: Client-side request timeout.
            client: Pre-built client (tests).

        Raises:
            ValueError: If API key is not provided.
        """
        if not api_key:
            raise ValueError("OpenAI API key is required")

        self.model = model
        self.client = client or OpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)

        logger.info("OpenAI vision provider initialized", extra={"model": self.model})

    def detect(self, frame: bytes, cues: Sequence[TriggerDefinition]) -> list[Detection]:
        if not cues:
            return []

        image_b64 = base64.b64encode(frame).decode("ascii")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": build_prompt(cues)},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:image/jpeg;base64,{image_b64}",
                                    "detail": "low",
                                },
                            },
                        ],
                    }
                ],  # type: ignore
                response_format={"type": "json_object"},
                max_tokens=300 if len(cues) == 1 else 500,
                temperature=0.0,
            )
        except openai.APIStatusError as e:
            raise ProviderRequestError(self.name, str(e), status_code=e.status_code) from e
        except openai.APIError as e:
            raise ProviderRequestError(self.name, str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        return parse_response(content, cues, provider=self.name)

    def dispose(self) -> None:
        self.client.close()
