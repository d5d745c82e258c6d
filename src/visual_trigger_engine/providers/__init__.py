"""Detection providers package initialization."""

from visual_trigger_engine.providers.factory import PROVIDER_TYPES, ProviderFactory, ProviderType
from visual_trigger_engine.providers.local_provider import MediaPipeProvider
from visual_trigger_engine.providers.provider import DetectionProvider

__all__ = [
    "PROVIDER_TYPES",
    "DetectionProvider",
    "MediaPipeProvider",
    "ProviderFactory",
    "ProviderType",
]
