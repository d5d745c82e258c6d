"""Test configuration and fixtures."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Sequence

import pytest

from visual_trigger_engine.config import EngineSettings
from visual_trigger_engine.config_store import InMemoryTriggerConfigStore
from visual_trigger_engine.engine.events import Broadcaster
from visual_trigger_engine.engine.scheduler import VisualTriggerSession
from visual_trigger_engine.errors import FrameExtractionError
from visual_trigger_engine.models import Detection, TriggerConfig, TriggerDefinition
from visual_trigger_engine.providers.local_provider import MediaPipeProvider
from visual_trigger_engine.providers.provider import DetectionProvider


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFrameSource:
    def __init__(self, *, fail: bool = False, gate: threading.Event | None = None) -> None:
        self.calls = 0
        self.fail = fail
        self.gate = gate

    def extract_frame(self) -> bytes:
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(5)
        if self.fail:
            raise FrameExtractionError("stream offline")
        return b"\xff\xd8fake-jpeg"


class ScriptedProvider(DetectionProvider):
    """Cloud-style provider returning a fixed confidence for every requested cue."""

    def __init__(
        self,
        name: str = "fake",
        *,
        confidence: float | None = 0.95,
        before_return: Callable[[], None] | None = None,
    ) -> None:
        self.name = name
        self.confidence = confidence
        self.before_return = before_return
        self.calls: list[list[str]] = []
        self.disposed = False
        self._lock = threading.Lock()

    def detect(self, frame: bytes, cues: Sequence[TriggerDefinition]) -> list[Detection]:
        with self._lock:
            self.calls.append([cue.label for cue in cues])
        if self.before_return is not None:
            self.before_return()
        if self.confidence is None:
            return []
        return [Detection(label=cue.label, confidence=self.confidence) for cue in cues]

    def dispose(self) -> None:
        self.disposed = True


def make_cue(label: str, *, threshold: float = 0.7, provider: str | None = None) -> TriggerDefinition:
    return TriggerDefinition(id=f"cue-{label}", label=label, threshold=threshold, provider=provider)


def make_config(
    *cues: TriggerDefinition,
    enabled: bool = True,
    sample_rate: float = 5.0,
    cooldown: float = 30.0,
) -> TriggerConfig:
    return TriggerConfig(
        enabled=enabled,
        frame_sample_rate_seconds=sample_rate,
        trigger_cooldown_seconds=cooldown,
        cues=cues,
    )


@pytest.fixture
def settings() -> EngineSettings:
    """Settings with no credentials and a short detection timeout."""
    return EngineSettings(
        _env_file=None,
        openai_api_key="",
        gemini_api_key="",
        anthropic_api_key="",
        frame_check_interval_ms=2000,
        detection_timeout_ms=500,
        frame_extraction_timeout_seconds=1.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryTriggerConfigStore:
    return InMemoryTriggerConfigStore()


@pytest.fixture
def frame_source() -> FakeFrameSource:
    return FakeFrameSource()


@pytest.fixture
def make_session(
    settings: EngineSettings,
    clock: FakeClock,
    store: InMemoryTriggerConfigStore,
    frame_source: FakeFrameSource,
) -> Iterator[Callable[..., VisualTriggerSession]]:
    """Build sessions wired to fakes; every session is stopped on teardown."""

    created: list[VisualTriggerSession] = []

    def _make(
        *,
        providers: dict[str, DetectionProvider] | None = None,
        provider_type: str = "fake",
        workflow: str = "streamer",
        session_id: str = "session-1",
        source: FakeFrameSource | None = None,
        session_settings: EngineSettings | None = None,
        broadcaster: Broadcaster | None = None,
    ) -> VisualTriggerSession:
        available = providers if providers is not None else {}

        def builder(tag: str, _settings: EngineSettings) -> DetectionProvider | None:
            if tag == "mediapipe" and tag not in available:
                return MediaPipeProvider()
            return available.get(tag)

        session = VisualTriggerSession(
            session_id=session_id,
            workflow=workflow,
            provider_type=provider_type,
            config_store=store,
            settings=session_settings or settings,
            frame_source=source or frame_source,
            broadcaster=broadcaster,
            provider_builder=builder,
            clock=clock,
        )
        created.append(session)
        return session

    yield _make

    for session in created:
        session.stop()
