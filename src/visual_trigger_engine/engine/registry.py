"""Registry of live visual trigger sessions, keyed by session id."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence

from visual_trigger_engine.config import EngineSettings
from visual_trigger_engine.config_store import TriggerConfigStore
from visual_trigger_engine.engine.events import Broadcaster, TriggerEvent
from visual_trigger_engine.engine.scheduler import ProviderBuilder, VisualTriggerSession
from visual_trigger_engine.engine.state_machine import EngineState
from visual_trigger_engine.frames.source import FrameSource
from visual_trigger_engine.models import Detection
from visual_trigger_engine.providers.factory import ProviderFactory

logger = logging.getLogger(__name__)

FrameSourceFactory = Callable[[str], FrameSource | None]


class VisualTriggerRegistry:
    """Owns one `VisualTriggerSession` per live session.

    The hosting process creates one registry and ties `start_session` /
    `stop_session` to its session lifecycle. Sessions are independent of
    each other; the registry lock only guards the mapping.
    """

    def __init__(
        self,
        *,
        config_store: TriggerConfigStore,
        settings: EngineSettings,
        broadcaster: Broadcaster | None = None,
        frame_source_factory: FrameSourceFactory | None = None,
        provider_builder: ProviderBuilder = ProviderFactory.try_create,
    ) -> None:
        self._config_store = config_store
        self._settings = settings
        self._broadcaster = broadcaster
        self._frame_source_factory = frame_source_factory
        self._provider_builder = provider_builder
        self._lock = threading.Lock()
        self._sessions: dict[str, VisualTriggerSession] = {}

    def start_session(
        self,
        session_id: str,
        workflow: str,
        provider_type: str = "mediapipe",
        *,
        callbacks: Sequence[Callable[[TriggerEvent], None]] = (),
    ) -> VisualTriggerSession:
        """Create and start a session, replacing any runtime already registered for the id."""

        frame_source = (
            self._frame_source_factory(session_id) if self._frame_source_factory else None
        )
        session = VisualTriggerSession(
            session_id=session_id,
            workflow=workflow,
            provider_type=provider_type,
            config_store=self._config_store,
            settings=self._settings,
            frame_source=frame_source,
            broadcaster=self._broadcaster,
            provider_builder=self._provider_builder,
        )
        for callback in callbacks:
            session.on_trigger(callback)

        with self._lock:
            previous = self._sessions.pop(session_id, None)
            self._sessions[session_id] = session
        if previous is not None:
            logger.info("Replacing running visual trigger session", extra={"session_id": session_id})
            previous.stop()

        session.start()
        return session

    def stop_session(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.stop()
        return True

    def get(self, session_id: str) -> VisualTriggerSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def sessions(self) -> list[VisualTriggerSession]:
        with self._lock:
            return list(self._sessions.values())

    def reload_config(self, session_id: str) -> EngineState | None:
        session = self.get(session_id)
        if session is None:
            return None
        return session.reload_config()

    def reload_workflow(self, workflow: str) -> int:
        """Reload every session running the workflow; returns how many were reloaded."""

        targets = [s for s in self.sessions() if s.workflow == workflow]
        for session in targets:
            session.reload_config()
        return len(targets)

    def push_detections(self, session_id: str, detections: Sequence[Detection]) -> list[TriggerEvent]:
        session = self.get(session_id)
        if session is None:
            logger.debug("Detections for unknown session dropped", extra={"session_id": session_id})
            return []
        return session.push_detections(detections)

    def stop_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.stop()
