"""Abstract base class for detection providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from visual_trigger_engine.models import Detection, TriggerDefinition


class DetectionProvider(ABC):
    """Abstract base class for detection providers.

    This interface allows pluggable detectors (browser-forwarded MediaPipe,
    cloud vision APIs). Implementations must not keep per-call state so the
    scheduler can call them concurrently for different cues.
    """

    name: str = ""

    #: Pull-based providers are driven by the periodic frame cycle. Push-based
    #: providers receive detections from the transport and are never polled.
    pull_based: bool = True

    @abstractmethod
    def detect(self, frame: bytes, cues: Sequence[TriggerDefinition]) -> list[Detection]:
        """Detect the given cues in a frame.

        Args:
            frame: JPEG bytes of one frame.
            cues: Cues to look for.

        Returns:
            Detections labelled with the matching cue label. Empty on a
            malformed response.

        Raises:
            ProviderRequestError: On transport failure or a non-2xx response.
        """
        pass

    def dispose(self) -> None:
        """Release any held resources."""
        return None
