"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the session registry and the
trigger configuration store.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from visual_trigger_engine import __version__
from visual_trigger_engine.config_store import JsonTriggerConfigStore
from visual_trigger_engine.engine.registry import VisualTriggerRegistry
from visual_trigger_engine.frames.ffmpeg_extractor import FfmpegFrameExtractor
from visual_trigger_engine.models import Detection, TriggerConfig, TriggerDefinition
from visual_trigger_engine.server.config import ServerSettings
from visual_trigger_engine.server.hub import SubscriberHub, WebSocketSubscriber
from visual_trigger_engine.server.models import (
    AddVisualTriggerRequest,
    ApiDetection,
    PushDetectionsRequest,
    PushDetectionsResponse,
    SessionStatus,
    StartRequest,
    UpdateTriggerConfigRequest,
)

logger = logging.getLogger(__name__)

MEDIAPIPE_DETECTIONS = "MEDIAPIPE_DETECTIONS"


def _to_detections(items: list[ApiDetection]) -> list[Detection]:
    out: list[Detection] = []
    for item in items:
        detection = item.to_detection()
        if detection is not None:
            out.append(detection)
    return out


def create_app(
    *,
    settings: ServerSettings | None = None,
    config_store: JsonTriggerConfigStore | None = None,
    registry: VisualTriggerRegistry | None = None,
    hub: SubscriberHub | None = None,
) -> FastAPI:
    settings = settings or ServerSettings()
    hub = hub or SubscriberHub()
    config_store = config_store or JsonTriggerConfigStore(settings.trigger_config_path)
    if registry is None:
        registry = VisualTriggerRegistry(
            config_store=config_store,
            settings=settings,
            broadcaster=hub,
            frame_source_factory=lambda _session_id: FfmpegFrameExtractor.from_settings(settings),
        )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        registry.stop_all()

    app = FastAPI(
        title="Visual Trigger Engine",
        version=__version__,
        description="REST and WebSocket surface over the visual trigger engine.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.hub = hub

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _status_or_404(session_id: str) -> SessionStatus:
        session = registry.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return SessionStatus.model_validate(session.status())

    @app.get("/api/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "version": __version__,
            "sessions": len(registry.sessions()),
            "subscribers": len(hub),
        }

    @app.post("/api/sessions/{session_id}/visual-triggers/start", response_model=SessionStatus)
    def start_session(session_id: str, req: StartRequest) -> SessionStatus:
        session = registry.start_session(session_id, req.workflow, req.provider)
        return SessionStatus.model_validate(session.status())

    @app.post("/api/sessions/{session_id}/visual-triggers/stop")
    def stop_session(session_id: str) -> dict[str, bool]:
        return {"stopped": registry.stop_session(session_id)}

    @app.post("/api/sessions/{session_id}/visual-triggers/reload", response_model=SessionStatus)
    def reload_session(session_id: str) -> SessionStatus:
        if registry.reload_config(session_id) is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return _status_or_404(session_id)

    @app.get("/api/sessions/{session_id}/visual-triggers", response_model=SessionStatus)
    def get_session(session_id: str) -> SessionStatus:
        return _status_or_404(session_id)

    @app.post(
        "/api/sessions/{session_id}/visual-triggers/detections",
        response_model=PushDetectionsResponse,
    )
    def push_detections(session_id: str, req: PushDetectionsRequest) -> PushDetectionsResponse:
        if registry.get(session_id) is None:
            raise HTTPException(status_code=404, detail="Session not found")
        detections = _to_detections(req.detections)
        events = registry.push_detections(session_id, detections)
        return PushDetectionsResponse(accepted=len(detections), emitted=len(events))

    @app.get("/api/triggers/{workflow}/visual", response_model=TriggerConfig)
    def get_visual_triggers(workflow: str) -> TriggerConfig:
        return config_store.get_or_create_trigger_config(workflow)

    @app.patch("/api/triggers/{workflow}/visual", response_model=TriggerConfig)
    def update_visual_triggers(workflow: str, req: UpdateTriggerConfigRequest) -> TriggerConfig:
        updates = req.model_dump(exclude_none=True)
        config = config_store.update_trigger_config(workflow, **updates)
        registry.reload_workflow(workflow)
        return config

    @app.post("/api/triggers/{workflow}/visual", response_model=TriggerDefinition, status_code=201)
    def add_visual_trigger(workflow: str, req: AddVisualTriggerRequest) -> TriggerDefinition:
        cue = config_store.add_visual_trigger(
            workflow,
            label=req.label,
            threshold=req.threshold,
            query=req.query,
            provider=req.provider,
            image_id=req.image_id,
        )
        registry.reload_workflow(workflow)
        return cue

    @app.delete("/api/triggers/{workflow}/visual/{trigger_id}")
    def remove_visual_trigger(workflow: str, trigger_id: str) -> dict[str, bool]:
        if not config_store.remove_visual_trigger(workflow, trigger_id):
            raise HTTPException(status_code=404, detail="Trigger not found")
        registry.reload_workflow(workflow)
        return {"removed": True}

    @app.websocket("/ws")
    async def events_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        subscriber = WebSocketSubscriber(websocket, asyncio.get_running_loop())
        hub.add(subscriber)
        try:
            while True:
                raw = await websocket.receive_text()
                await _handle_inbound(raw)
        except WebSocketDisconnect:
            pass
        finally:
            subscriber.close()
            hub.remove(subscriber)

    async def _handle_inbound(raw: str) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Ignoring non-JSON websocket message")
            return
        if not isinstance(message, dict) or message.get("type") != MEDIAPIPE_DETECTIONS:
            return

        session_id = message.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            return
        try:
            req = PushDetectionsRequest.model_validate({"detections": message.get("detections", [])})
        except ValidationError:
            logger.warning("Invalid forwarded detections", extra={"session_id": session_id})
            return
        await run_in_threadpool(registry.push_detections, session_id, _to_detections(req.detections))

    return app
