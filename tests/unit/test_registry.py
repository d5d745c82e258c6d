"""Unit tests for the session registry."""

from __future__ import annotations

from conftest import make_config, make_cue

from visual_trigger_engine.engine.events import TriggerEvent
from visual_trigger_engine.engine.registry import VisualTriggerRegistry
from visual_trigger_engine.engine.state_machine import EngineState
from visual_trigger_engine.models import Detection


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def broadcast(self, message: str) -> None:
        self.messages.append(message)


def _registry(store, settings, broadcaster=None) -> VisualTriggerRegistry:
    return VisualTriggerRegistry(config_store=store, settings=settings, broadcaster=broadcaster)


def test_start_get_stop(store, settings) -> None:
    store.save_trigger_config("streamer", make_config(make_cue("wave")))
    registry = _registry(store, settings)

    session = registry.start_session("s1", "streamer")

    assert session.state == EngineState.ACTIVE
    assert registry.get("s1") is session
    assert registry.stop_session("s1") is True
    assert session.state == EngineState.STOPPED
    assert registry.get("s1") is None
    assert registry.stop_session("s1") is False


def test_restart_replaces_previous_session(store, settings) -> None:
    store.save_trigger_config("streamer", make_config(make_cue("wave")))
    registry = _registry(store, settings)

    first = registry.start_session("s1", "streamer")
    second = registry.start_session("s1", "streamer")

    assert first is not second
    assert first.state == EngineState.STOPPED
    assert registry.get("s1") is second
    assert len(registry.sessions()) == 1
    registry.stop_all()


def test_push_detections_routes_and_broadcasts(store, settings) -> None:
    store.save_trigger_config("streamer", make_config(make_cue("wave")))
    broadcaster = RecordingBroadcaster()
    registry = _registry(store, settings, broadcaster)
    received: list[TriggerEvent] = []
    registry.start_session("s1", "streamer", callbacks=[received.append])

    assert registry.push_detections("unknown", [Detection("wave", 0.9)]) == []
    events = registry.push_detections("s1", [Detection("wave", 0.9)])

    assert len(events) == 1
    assert received == events
    assert len(broadcaster.messages) == 1
    assert '"sessionId":"s1"' in broadcaster.messages[0]
    registry.stop_all()


def test_reload_workflow_touches_matching_sessions(store, settings) -> None:
    store.save_trigger_config("streamer", make_config(make_cue("wave"), enabled=False))
    registry = _registry(store, settings)
    a = registry.start_session("a", "streamer")
    b = registry.start_session("b", "podcast")
    assert a.state == EngineState.IDLE

    store.save_trigger_config("streamer", make_config(make_cue("wave")))

    assert registry.reload_workflow("streamer") == 1
    assert a.state == EngineState.ACTIVE
    assert b.state == EngineState.IDLE
    assert registry.reload_config("missing") is None

    registry.stop_all()
    assert registry.sessions() == []
    assert a.state == EngineState.STOPPED
    assert b.state == EngineState.STOPPED
