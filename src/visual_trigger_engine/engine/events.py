"""Trigger events and their fan-out to in-process callbacks and the transport."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from visual_trigger_engine.models import Detection

logger = logging.getLogger(__name__)

AUTO_TRIGGER_DETECTED = "AUTO_TRIGGER_DETECTED"


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    """A qualifying detection that passed every gate.

    `t` is seconds elapsed since the session started.
    """

    session_id: str
    workflow: str
    detection: Detection
    t: float


TriggerCallback = Callable[[TriggerEvent], None]


class AutoTriggerPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    trigger_type: Literal["visual"] = "visual"
    trigger_source: str
    confidence: float
    t: float


class EventEnvelope(BaseModel):
    """Serialized form broadcast to transport subscribers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str
    ts: int = Field(default_factory=lambda: int(time.time() * 1000))
    type: Literal["AUTO_TRIGGER_DETECTED"] = AUTO_TRIGGER_DETECTED
    payload: AutoTriggerPayload

    @staticmethod
    def from_trigger_event(event: TriggerEvent) -> EventEnvelope:
        return EventEnvelope(
            session_id=event.session_id,
            payload=AutoTriggerPayload(
                trigger_source=event.detection.label,
                confidence=event.detection.confidence,
                t=event.t,
            ),
        )

    def to_message(self) -> str:
        return self.model_dump_json(by_alias=True)


class Broadcaster(Protocol):
    """Outbound transport primitive. Delivery is best-effort."""

    def broadcast(self, message: str) -> None: ...


class TriggerEventEmitter:
    """Observer list for one session plus the shared broadcast primitive.

    Callbacks run synchronously in registration order. The list is replaced,
    never mutated, so an emission in flight iterates a stable snapshot.
    """

    def __init__(self, broadcaster: Broadcaster | None = None) -> None:
        self._broadcaster = broadcaster
        self._lock = threading.Lock()
        self._callbacks: tuple[TriggerCallback, ...] = ()
        self._closed = False

    def add_callback(self, callback: TriggerCallback) -> None:
        with self._lock:
            if self._closed:
                return
            self._callbacks = (*self._callbacks, callback)

    def remove_callback(self, callback: TriggerCallback) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
            if callback in callbacks:
                callbacks.remove(callback)
            self._callbacks = tuple(callbacks)

    def clear(self) -> None:
        with self._lock:
            self._callbacks = ()

    def close(self) -> None:
        """Drop callbacks and stop delivering; emissions already in flight go quiet."""

        with self._lock:
            self._callbacks = ()
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def callback_count(self) -> int:
        return len(self._callbacks)

    def emit(self, event: TriggerEvent) -> EventEnvelope | None:
        """Run callbacks, then broadcast. Returns None once the emitter is closed."""

        for callback in self._callbacks:
            # A callback may stop the session; nothing further goes out after that.
            if self._closed:
                return None
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Trigger callback failed",
                    extra={"session_id": event.session_id, "label": event.detection.label},
                )

        if self._closed:
            return None

        envelope = EventEnvelope.from_trigger_event(event)
        if self._broadcaster is not None:
            try:
                self._broadcaster.broadcast(envelope.to_message())
            except Exception:
                logger.exception(
                    "Broadcast of trigger event failed",
                    extra={"session_id": event.session_id, "event_id": envelope.id},
                )

        logger.info(
            "Emitted AUTO_TRIGGER_DETECTED",
            extra={
                "session_id": event.session_id,
                "workflow": event.workflow,
                "label": event.detection.label,
                "confidence": event.detection.confidence,
                "t": round(event.t, 2),
            },
        )
        return envelope
