"""Factory for creating detection providers."""

from __future__ import annotations

import logging
from typing import Literal, get_args

from visual_trigger_engine.config import EngineSettings
from visual_trigger_engine.errors import ProviderUnavailableError
from visual_trigger_engine.providers.claude_provider import ClaudeVisionProvider
from visual_trigger_engine.providers.gemini_provider import GeminiVisionProvider
from visual_trigger_engine.providers.local_provider import MediaPipeProvider
from visual_trigger_engine.providers.openai_provider import OpenAIVisionProvider
from visual_trigger_engine.providers.provider import DetectionProvider

logger = logging.getLogger(__name__)

ProviderType = Literal["mediapipe", "openai", "gemini", "claude"]
PROVIDER_TYPES: tuple[str, ...] = get_args(ProviderType)


class ProviderFactory:
    """Factory for creating detection provider instances."""

    @staticmethod
    def create(provider_type: str, settings: EngineSettings) -> DetectionProvider:
        """Create a detection provider from its tag.

        Args:
            provider_type: One of ``PROVIDER_TYPES``.
            settings: Engine settings carrying credentials and timeouts.

        Returns:
            Configured provider instance.

        Raises:
            ProviderUnavailableError: If the tag is unknown, credentials are
                missing, or the vendor client cannot be constructed.
        """
        logger.info("Creating detection provider", extra={"provider": provider_type})

        timeout = settings.detection_timeout_seconds
        try:
            if provider_type == "mediapipe":
                return MediaPipeProvider()
            elif provider_type == "openai":
                return OpenAIVisionProvider(
                    settings.openai_api_key,
                    model=settings.openai_model,
                    timeout_seconds=timeout,
                )
            elif provider_type == "gemini":
                return GeminiVisionProvider(
                    settings.gemini_api_key,
                    model=settings.gemini_model,
                    timeout_seconds=timeout,
                )
            elif provider_type == "claude":
                return ClaudeVisionProvider(
                    settings.anthropic_api_key,
                    model=settings.claude_model,
                    base_url=settings.anthropic_base_url,
                    timeout_seconds=timeout,
                )
        except ProviderUnavailableError:
            raise
        except Exception as e:
            raise ProviderUnavailableError(provider_type, str(e)) from e

        raise ProviderUnavailableError(provider_type, "unsupported provider type")

    @staticmethod
    def try_create(provider_type: str, settings: EngineSettings) -> DetectionProvider | None:
        """Like `create`, but returns None ("unavailable") after logging a warning."""

        try:
            return ProviderFactory.create(provider_type, settings)
        except ProviderUnavailableError as e:
            logger.warning(
                "Detection provider unavailable",
                extra={"provider": provider_type, "reason": e.reason},
            )
            return None
