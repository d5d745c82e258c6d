"""Exception types raised inside the visual trigger engine."""

from __future__ import annotations


class VisualTriggerError(Exception):
    """Base class for engine errors."""


class ProviderUnavailableError(VisualTriggerError, ValueError):
    """A detection provider cannot be constructed (unknown tag, missing credentials)."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"Provider '{provider}' unavailable: {reason}")
        self.provider = provider
        self.reason = reason


class ProviderRequestError(VisualTriggerError):
    """A cloud provider call failed at the transport level or returned non-2xx."""

    def __init__(self, provider: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class FrameExtractionError(VisualTriggerError):
    """The frame source could not produce a frame."""


class FrameExtractionTimeout(FrameExtractionError):
    """The frame source did not produce a frame within the allowed wait."""


class IllegalTransitionError(VisualTriggerError, ValueError):
    """A session lifecycle transition outside the allowed table."""
