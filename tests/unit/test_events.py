"""Unit tests for trigger event emission."""

from __future__ import annotations

import json
from unittest.mock import Mock

from visual_trigger_engine.engine.events import (
    AUTO_TRIGGER_DETECTED,
    EventEnvelope,
    TriggerEvent,
    TriggerEventEmitter,
)
from visual_trigger_engine.models import Detection


def _event() -> TriggerEvent:
    return TriggerEvent(
        session_id="session-1",
        workflow="streamer",
        detection=Detection(label="thumbs_up", confidence=0.95),
        t=12.5,
    )


def test_envelope_wire_format() -> None:
    message = json.loads(EventEnvelope.from_trigger_event(_event()).to_message())

    assert set(message) == {"id", "sessionId", "ts", "type", "payload"}
    assert message["sessionId"] == "session-1"
    assert message["type"] == AUTO_TRIGGER_DETECTED
    assert isinstance(message["ts"], int)
    assert message["payload"] == {
        "triggerType": "visual",
        "triggerSource": "thumbs_up",
        "confidence": 0.95,
        "t": 12.5,
    }


def test_envelope_ids_are_unique() -> None:
    a = EventEnvelope.from_trigger_event(_event())
    b = EventEnvelope.from_trigger_event(_event())
    assert a.id != b.id


def test_callbacks_run_in_order_then_broadcast() -> None:
    order: list[str] = []
    broadcaster = Mock()
    broadcaster.broadcast.side_effect = lambda _m: order.append("broadcast")

    emitter = TriggerEventEmitter(broadcaster)
    emitter.add_callback(lambda _e: order.append("first"))
    emitter.add_callback(lambda _e: order.append("second"))

    emitter.emit(_event())

    assert order == ["first", "second", "broadcast"]


def test_failing_callback_is_isolated() -> None:
    broadcaster = Mock()
    seen: list[TriggerEvent] = []

    def bad(_event: TriggerEvent) -> None:
        raise ValueError("boom")

    emitter = TriggerEventEmitter(broadcaster)
    emitter.add_callback(bad)
    emitter.add_callback(seen.append)

    emitter.emit(_event())

    assert len(seen) == 1
    broadcaster.broadcast.assert_called_once()


def test_failing_broadcast_does_not_raise() -> None:
    broadcaster = Mock()
    broadcaster.broadcast.side_effect = ConnectionError("socket gone")
    emitter = TriggerEventEmitter(broadcaster)

    envelope = emitter.emit(_event())

    assert envelope is not None
    assert envelope.payload.trigger_source == "thumbs_up"


def test_remove_and_clear_callbacks() -> None:
    seen: list[TriggerEvent] = []
    emitter = TriggerEventEmitter()
    emitter.add_callback(seen.append)
    emitter.remove_callback(seen.append)
    emitter.remove_callback(seen.append)
    emitter.emit(_event())
    assert seen == []

    emitter.add_callback(seen.append)
    emitter.clear()
    assert emitter.callback_count == 0


def test_closed_emitter_delivers_nothing() -> None:
    broadcaster = Mock()
    seen: list[TriggerEvent] = []
    emitter = TriggerEventEmitter(broadcaster)
    emitter.add_callback(seen.append)

    emitter.close()
    emitter.add_callback(seen.append)

    assert emitter.emit(_event()) is None
    assert seen == []
    assert emitter.callback_count == 0
    broadcaster.broadcast.assert_not_called()


def test_close_during_emission_suppresses_remaining_delivery() -> None:
    broadcaster = Mock()
    seen: list[str] = []
    emitter = TriggerEventEmitter(broadcaster)
    emitter.add_callback(lambda _e: emitter.close())
    emitter.add_callback(lambda _e: seen.append("late"))

    assert emitter.emit(_event()) is None
    assert seen == []
    broadcaster.broadcast.assert_not_called()
