"""Claude vision provider implementation over the Messages HTTP API."""

from __future__ import annotations

import base64
import logging
from collections.abc import Sequence
from typing import Any

import requests

from visual_trigger_engine.errors import ProviderRequestError
from visual_trigger_engine.models import Detection, TriggerDefinition
from visual_trigger_engine.providers.prompts import build_prompt, parse_response
from visual_trigger_engine.providers.provider import DetectionProvider

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeVisionProvider(DetectionProvider):
    """Anthropic Claude provider.

    Talks to `/v1/messages` directly; a `requests.Session` is kept for
    connection reuse and is safe to share across the per-cue worker threads
    because nothing mutates it after construction.
    """

    name = "claude"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "claude-sonnet-4-20250514",
        base_url: str = "https://api.anthropic.com",
        timeout_seconds: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Anthropic API key is required")

        self.model = model
        self._url = f"{base_url.rstrip('/')}/v1/messages"
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Content-Type": "application/json",
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "User-Agent": "visual-trigger-engine",
            }
        )

        logger.info("Claude vision provider initialized", extra={"model": self.model})

    def _payload(self, frame: bytes, cues: Sequence[TriggerDefinition]) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": 1024,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": "image/jpeg",
                                "data": base64.b64encode(frame).decode("ascii"),
                            },
                        },
                        {"type": "text", "text": build_prompt(cues)},
                    ],
                }
            ],
        }

    def detect(self, frame: bytes, cues: Sequence[TriggerDefinition]) -> list[Detection]:
        if not cues:
            return []

        try:
            resp = self._session.post(
                self._url, json=self._payload(frame, cues), timeout=self._timeout
            )
        except requests.RequestException as e:
            raise ProviderRequestError(self.name, str(e)) from e

        if not resp.ok:
            raise ProviderRequestError(
                self.name, f"Claude API error: {resp.status_code}", status_code=resp.status_code
            )

        try:
            data: dict[str, Any] = resp.json()
        except ValueError:
            logger.warning("Claude returned a non-JSON body", extra={"provider": self.name})
            return []

        text = ""
        content = data.get("content")
        if isinstance(content, list):
            text = "".join(
                block.get("text", "")
                for block in content
                if isinstance(block, dict) and block.get("type") == "text"
            )
        return parse_response(text, cues, provider=self.name)

    def dispose(self) -> None:
        self._session.close()
