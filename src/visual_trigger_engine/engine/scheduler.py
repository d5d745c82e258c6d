"""Per-session visual trigger detection.

A `VisualTriggerSession` owns everything one live session needs: the active
configuration snapshot, the providers, the cooldown ledger, the event emitter
and (for pull-based providers) a sampling thread.

Two ingestion paths feed one gate:

- the periodic cycle pulls a frame and fans out one detect call per cue;
- `push_detections` receives browser-side MediaPipe results and runs them
  through the gate synchronously.

Both paths go through `_gate_and_emit`, so cooldowns hold regardless of where a
detection came from.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any

from visual_trigger_engine.config import EngineSettings
from visual_trigger_engine.config_store import TriggerConfigStore
from visual_trigger_engine.engine.cooldown import CooldownLedger
from visual_trigger_engine.engine.events import (
    Broadcaster,
    TriggerCallback,
    TriggerEvent,
    TriggerEventEmitter,
)
from visual_trigger_engine.engine.state_machine import EngineState, transition
from visual_trigger_engine.errors import (
    FrameExtractionError,
    FrameExtractionTimeout,
    ProviderRequestError,
)
from visual_trigger_engine.frames.source import FrameSource
from visual_trigger_engine.models import Detection, TriggerConfig, TriggerDefinition
from visual_trigger_engine.providers.factory import ProviderFactory
from visual_trigger_engine.providers.local_provider import MediaPipeProvider
from visual_trigger_engine.providers.provider import DetectionProvider

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[str, EngineSettings], DetectionProvider | None]


def _is_runnable(config: TriggerConfig) -> bool:
    return config.enabled and bool(config.enabled_cues)


class VisualTriggerSession:
    """Visual trigger runtime for one live session.

    States: IDLE -> ACTIVE -> STOPPED, or IDLE -> STOPPED when the workflow
    has visual triggers disabled, has no cues, or no provider is available.
    """

    def __init__(
        self,
        *,
        session_id: str,
        workflow: str,
        config_store: TriggerConfigStore,
        settings: EngineSettings,
        provider_type: str = "mediapipe",
        frame_source: FrameSource | None = None,
        broadcaster: Broadcaster | None = None,
        provider_builder: ProviderBuilder = ProviderFactory.try_create,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not session_id:
            raise ValueError("session_id is required")
        if not workflow:
            raise ValueError("workflow is required")

        self.session_id = session_id
        self.workflow = workflow
        self.provider_type = provider_type

        self._config_store = config_store
        self._settings = settings
        self._frame_source = frame_source
        self._provider_builder = provider_builder
        self._clock = clock

        self._lock = threading.RLock()
        self._state = EngineState.IDLE
        self._started_at: float | None = None
        self._generation = 0

        # Swapped by reference; readers take one local copy per cycle.
        self._snapshot = TriggerConfig()
        self._providers: dict[str, DetectionProvider] = {}

        self._ledger = CooldownLedger()
        self.emitter = TriggerEventEmitter(broadcaster)

        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._frame_pool: ThreadPoolExecutor | None = None

    # -- introspection -------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def snapshot(self) -> TriggerConfig:
        return self._snapshot

    @property
    def ledger(self) -> CooldownLedger:
        return self._ledger

    @property
    def providers(self) -> dict[str, DetectionProvider]:
        return dict(self._providers)

    @property
    def is_sampling(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def status(self) -> dict[str, Any]:
        snapshot = self._snapshot
        return {
            "session_id": self.session_id,
            "workflow": self.workflow,
            "provider": self.provider_type,
            "state": self._state.value,
            "enabled": snapshot.enabled,
            "cue_count": len(snapshot.enabled_cues),
            "providers": sorted(self._providers),
            "sampling": self.is_sampling,
        }

    # -- callbacks -----------------------------------------------------

    def on_trigger(self, callback: TriggerCallback) -> None:
        self.emitter.add_callback(callback)

    def off_trigger(self, callback: TriggerCallback) -> None:
        self.emitter.remove_callback(callback)

    # -- lifecycle -----------------------------------------------------

    def start(self) -> EngineState:
        """Load configuration and begin monitoring.

        Staying IDLE is not an error: it is the steady state for workflows that
        opt out of visual triggers or whose providers are unavailable.
        """

        with self._lock:
            if self._state is not EngineState.IDLE or self._started_at is not None:
                raise RuntimeError(f"Session {self.session_id} was already started")

            self._started_at = self._clock()
            self._snapshot = self._load_config() or TriggerConfig()

            if not _is_runnable(self._snapshot):
                logger.info(
                    "Visual triggers disabled or no cues configured",
                    extra={"session_id": self.session_id, "workflow": self.workflow},
                )
                return self._state

            self._activate()
            return self._state

    def stop(self) -> None:
        """Cancel sampling, dispose providers, clear ledgers and callbacks.

        Does not wait for an in-flight cycle; results that arrive afterwards
        are dropped at the gate. Safe to call repeatedly.
        """

        with self._lock:
            if self._state is EngineState.STOPPED:
                return

            self._generation += 1
            if self._stop_event is not None:
                self._stop_event.set()
            self._stop_event = None
            self._thread = None

            if self._frame_pool is not None:
                self._frame_pool.shutdown(wait=False, cancel_futures=True)
            self._frame_pool = None

            self._dispose_all(self._providers.values())
            self._providers = {}

            self._ledger.clear()
            self.emitter.close()
            self._state = transition(current=self._state, to=EngineState.STOPPED)

        logger.info(
            "Stopped visual trigger monitoring",
            extra={"session_id": self.session_id, "workflow": self.workflow},
        )

    def reload_config(self) -> EngineState:
        """Hot-swap cues, thresholds and timing without restarting sampling.

        An IDLE session whose workflow has since been enabled becomes ACTIVE.
        """

        with self._lock:
            if self._state is EngineState.STOPPED or self._started_at is None:
                return self._state

            new_snapshot = self._load_config() or TriggerConfig()

            if self._state is EngineState.IDLE:
                self._snapshot = new_snapshot
                if _is_runnable(new_snapshot):
                    self._activate()
                return self._state

            added = self._build_providers(new_snapshot, existing=self._providers)
            used = {self._tag_for(cue) for cue in new_snapshot.enabled_cues}
            kept = {tag: p for tag, p in self._providers.items() if tag in used}
            retired = [p for tag, p in self._providers.items() if tag not in used]
            self._providers = {**kept, **added}
            self._snapshot = new_snapshot
            self._dispose_all(retired)
            self._ensure_sampling()

        logger.info(
            "Visual trigger config reloaded",
            extra={
                "session_id": self.session_id,
                "enabled": new_snapshot.enabled,
                "trigger_count": len(new_snapshot.enabled_cues),
            },
        )
        return self._state

    def _load_config(self) -> TriggerConfig | None:
        try:
            config = self._config_store.get_trigger_config(self.workflow)
        except Exception:
            logger.exception(
                "Failed to load trigger config",
                extra={"session_id": self.session_id, "workflow": self.workflow},
            )
            return None

        if config is not None:
            logger.info(
                "Trigger config loaded",
                extra={
                    "workflow": self.workflow,
                    "enabled": config.enabled,
                    "sample_rate": config.frame_sample_rate_seconds,
                    "trigger_count": len(config.enabled_cues),
                },
            )
        return config

    def _tag_for(self, cue: TriggerDefinition) -> str:
        return cue.provider or self.provider_type

    def _build_providers(
        self, config: TriggerConfig, *, existing: dict[str, DetectionProvider]
    ) -> dict[str, DetectionProvider]:
        built: dict[str, DetectionProvider] = {}
        for tag in sorted({self._tag_for(cue) for cue in config.enabled_cues}):
            if tag in existing:
                continue
            provider = self._provider_builder(tag, self._settings)
            if provider is None:
                logger.warning(
                    "Cues for unavailable provider will be skipped",
                    extra={"session_id": self.session_id, "provider": tag},
                )
                continue
            built[tag] = provider
        return built

    def _dispose_all(self, providers: Iterable[DetectionProvider]) -> None:
        for provider in providers:
            try:
                provider.dispose()
            except Exception:
                logger.exception("Failed to dispose provider", extra={"provider": provider.name})

    def _activate(self) -> None:
        providers = self._build_providers(self._snapshot, existing={})
        if not providers:
            logger.warning(
                "No detection provider available; visual triggers stay idle",
                extra={"session_id": self.session_id, "provider": self.provider_type},
            )
            return

        self._providers = providers
        self._state = transition(current=self._state, to=EngineState.ACTIVE)
        self._ensure_sampling()

        logger.info(
            "Started visual trigger monitoring",
            extra={
                "session_id": self.session_id,
                "workflow": self.workflow,
                "trigger_count": len(self._snapshot.enabled_cues),
                "provider": self.provider_type,
            },
        )

    def _needs_sampling(self) -> bool:
        return any(p.pull_based for p in self._providers.values())

    def _ensure_sampling(self) -> None:
        """Start the sampling thread once a pull-based provider is in use."""

        if self._thread is not None or not self._needs_sampling():
            return
        if self._frame_source is None:
            logger.warning(
                "No frame source configured; cloud cues will not be sampled",
                extra={"session_id": self.session_id},
            )
            return

        self._frame_pool = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"visual-frame-{self.session_id}"
        )
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run_loop,
            name=f"visual-triggers-{self.session_id}",
            daemon=True,
            kwargs={"stop_event": self._stop_event},
        )
        self._thread.start()
        logger.info(
            "Starting frame sampling",
            extra={
                "session_id": self.session_id,
                "sample_rate": self._snapshot.frame_sample_rate_seconds,
            },
        )

    def _run_loop(self, *, stop_event: threading.Event) -> None:
        # Scheduling uses wall-clock monotonic time; the injectable clock only
        # drives ledger and event timestamps.
        interval = self._snapshot.frame_sample_rate_seconds
        next_tick = time.monotonic() + interval
        while not stop_event.wait(timeout=max(0.0, next_tick - time.monotonic())):
            try:
                self.run_cycle()
            except Exception:
                logger.exception("Visual trigger cycle failed", extra={"session_id": self.session_id})

            interval = self._snapshot.frame_sample_rate_seconds
            next_tick += interval
            now = time.monotonic()
            if next_tick <= now:
                # Overran: drop the missed ticks instead of queueing them.
                skipped = int((now - next_tick) // interval) + 1
                next_tick += skipped * interval
                logger.debug(
                    "Cycle overran; skipping ticks",
                    extra={"session_id": self.session_id, "skipped": skipped},
                )

    # -- detection -----------------------------------------------------

    def run_cycle(self) -> list[TriggerEvent]:
        """Run one sampling cycle and return the events it emitted."""

        generation = self._generation
        snapshot = self._snapshot
        providers = self._providers
        frame_source = self._frame_source
        frame_pool = self._frame_pool

        if self._state is not EngineState.ACTIVE or not snapshot.enabled:
            return []
        if frame_source is None or frame_pool is None:
            return []

        candidates = [
            (cue, providers[self._tag_for(cue)])
            for cue in snapshot.enabled_cues
            if self._tag_for(cue) in providers and providers[self._tag_for(cue)].pull_based
        ]
        if not candidates:
            return []

        now = self._clock()
        if not self._ledger.try_begin_frame_check(now, self._settings.frame_check_interval_seconds):
            logger.debug("Rate limited, skipping frame check", extra={"session_id": self.session_id})
            return []

        try:
            frame = self._extract_frame(frame_source, frame_pool)
        except FrameExtractionTimeout:
            logger.warning("Frame extraction timeout", extra={"session_id": self.session_id})
            return []
        except FrameExtractionError as e:
            logger.warning(
                "Frame extraction failed", extra={"session_id": self.session_id, "error": str(e)}
            )
            return []
        except RuntimeError:
            # Pool shut down by a concurrent stop().
            return []

        logger.debug("Frame extracted", extra={"session_id": self.session_id, "size": len(frame)})

        cooldown = snapshot.trigger_cooldown_seconds
        now = self._clock()
        ready = [
            (cue, provider)
            for cue, provider in candidates
            if self._ledger.is_ready(cue.id, now, cooldown)
        ]
        if not ready:
            return []

        emitted: list[TriggerEvent] = []
        timeout = self._settings.detection_timeout_seconds
        started: dict[str, float] = {}

        # One worker per ready cue: no call queues behind a slow sibling, and a
        # hung call only pins a thread of this cycle's pool.
        pool = ThreadPoolExecutor(
            max_workers=len(ready), thread_name_prefix=f"visual-detect-{self.session_id}"
        )
        try:
            futures: dict[Future[list[Detection]], TriggerDefinition] = {
                pool.submit(self._timed_detect, provider, frame, cue, started): cue
                for cue, provider in ready
            }
        finally:
            pool.shutdown(wait=False)
        submitted_at = time.monotonic()

        pending = set(futures)
        while pending:
            now = time.monotonic()
            # Each call's deadline runs from the moment the call itself began.
            for future in [f for f in pending if not f.done()]:
                cue = futures[future]
                if now - started.get(cue.id, submitted_at) < timeout:
                    continue
                pending.discard(future)
                future.cancel()
                logger.warning(
                    "Detection timeout",
                    extra={"session_id": self.session_id, "label": cue.label},
                )
            if not pending:
                break

            next_deadline = min(
                started.get(futures[f].id, submitted_at) + timeout for f in pending
            )
            done, pending = wait(
                pending, timeout=max(0.0, next_deadline - now), return_when=FIRST_COMPLETED
            )
            for future in done:
                event = self._handle_result(futures[future], future, generation)
                if event is not None:
                    emitted.append(event)
        return emitted

    @staticmethod
    def _timed_detect(
        provider: DetectionProvider,
        frame: bytes,
        cue: TriggerDefinition,
        started: dict[str, float],
    ) -> list[Detection]:
        started[cue.id] = time.monotonic()
        return provider.detect(frame, [cue])

    def _extract_frame(self, source: FrameSource, pool: ThreadPoolExecutor) -> bytes:
        # submit() raises RuntimeError once stop() has shut the pool down.
        future = pool.submit(source.extract_frame)
        try:
            return future.result(timeout=self._settings.frame_extraction_timeout_seconds)
        except FuturesTimeoutError as e:
            raise FrameExtractionTimeout("Frame extraction timeout") from e
        except FrameExtractionError:
            raise
        except Exception as e:
            raise FrameExtractionError(str(e)) from e

    def _handle_result(
        self, cue: TriggerDefinition, future: Future[list[Detection]], generation: int
    ) -> TriggerEvent | None:
        try:
            detections = future.result()
        except ProviderRequestError as e:
            logger.warning(
                "Detection request failed",
                extra={
                    "session_id": self.session_id,
                    "label": cue.label,
                    "provider": e.provider,
                    "status_code": e.status_code,
                },
            )
            return None
        except Exception:
            logger.exception(
                "Detection error", extra={"session_id": self.session_id, "label": cue.label}
            )
            return None

        for detection in detections:
            if detection.label.lower() != cue.label.lower():
                continue
            if detection.confidence < cue.threshold:
                continue
            return self._gate_and_emit(cue, detection, generation)
        return None

    def push_detections(self, detections: Sequence[Detection]) -> list[TriggerEvent]:
        """Feed browser-side detections through the gate.

        Ignored unless the session is ACTIVE with a MediaPipe provider.
        """

        generation = self._generation
        snapshot = self._snapshot
        if self._state is not EngineState.ACTIVE or not snapshot.enabled:
            return []

        local = self._providers.get(MediaPipeProvider.name)
        if not isinstance(local, MediaPipeProvider):
            logger.debug(
                "Ignoring pushed detections; no local provider",
                extra={"session_id": self.session_id},
            )
            return []

        local.receive_detections(detections)
        local_cues = [cue for cue in snapshot.enabled_cues if self._tag_for(cue) == local.name]
        by_label = {cue.label.lower(): cue for cue in local_cues}

        emitted: list[TriggerEvent] = []
        for detection in local.detect(b"", local_cues):
            cue = by_label.get(detection.label.lower())
            if cue is None or detection.confidence < cue.threshold:
                continue
            event = self._gate_and_emit(cue, detection, generation)
            if event is not None:
                emitted.append(event)
        return emitted

    def _gate_and_emit(
        self, cue: TriggerDefinition, detection: Detection, generation: int
    ) -> TriggerEvent | None:
        with self._lock:
            if generation != self._generation or self._state is not EngineState.ACTIVE:
                logger.debug(
                    "Discarding detection from a stopped session",
                    extra={"session_id": self.session_id, "label": cue.label},
                )
                return None

            now = self._clock()
            cooldown = self._snapshot.trigger_cooldown_seconds
            if not self._ledger.try_fire(cue.id, now, cooldown):
                logger.debug(
                    "Detection in cooldown",
                    extra={
                        "session_id": self.session_id,
                        "label": cue.label,
                        "remaining_sec": round(self._ledger.remaining(cue.id, now, cooldown)),
                    },
                )
                return None

            started_at = self._started_at if self._started_at is not None else now
            event = TriggerEvent(
                session_id=self.session_id,
                workflow=self.workflow,
                detection=detection,
                t=now - started_at,
            )

        logger.info(
            "Detected visual cue",
            extra={
                "session_id": self.session_id,
                "label": cue.label,
                "confidence": round(detection.confidence * 100, 1),
                "t": round(event.t, 2),
            },
        )
        if self.emitter.emit(event) is None:
            # stop() landed between the gate and delivery.
            return None
        return event
