"""Local forwarding provider for detections computed in the browser."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence

from visual_trigger_engine.models import Detection, TriggerDefinition
from visual_trigger_engine.providers.provider import DetectionProvider

logger = logging.getLogger(__name__)


class MediaPipeProvider(DetectionProvider):
    """Mailbox for detections produced by MediaPipe running in the browser.

    The provider never runs a model. `receive_detections` replaces the latest
    batch and `detect` filters it by the enabled cue labels.
    """

    name = "mediapipe"
    pull_based = False

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: tuple[Detection, ...] = ()

    def receive_detections(self, detections: Sequence[Detection]) -> None:
        with self._lock:
            self._pending = tuple(detections)
        logger.debug("Received forwarded detections", extra={"count": len(detections)})

    def detect(self, frame: bytes, cues: Sequence[TriggerDefinition]) -> list[Detection]:
        labels = {cue.label.lower() for cue in cues if cue.enabled}
        with self._lock:
            pending = self._pending
        return [d for d in pending if d.label.lower() in labels]

    def dispose(self) -> None:
        with self._lock:
            self._pending = ()
