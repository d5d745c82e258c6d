#!/usr/bin/env python3
"""Programmatic visual trigger example.

This demonstrates using the engine components directly:

* load settings from `.env`
* enable a workflow and add one cue in the JSON config store
* start a session against an RTSP stream and print trigger events

Stop with Ctrl-C.
"""

from __future__ import annotations

import argparse
import logging
import threading
from typing import Sequence

from visual_trigger_engine.config import EngineSettings
from visual_trigger_engine.config_store import JsonTriggerConfigStore
from visual_trigger_engine.engine.events import TriggerEvent
from visual_trigger_engine.engine.registry import VisualTriggerRegistry
from visual_trigger_engine.frames.ffmpeg_extractor import FfmpegFrameExtractor
from visual_trigger_engine.logging import configure_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch a stream for one visual cue.")
    parser.add_argument("--workflow", default="example", help="Workflow name in the config store")
    parser.add_argument("--label", required=True, help='Cue label, e.g. "thumbs_up"')
    parser.add_argument("--query", default=None, help="Natural-language description for cloud providers")
    parser.add_argument("--threshold", type=float, default=0.7, help="Minimum confidence (0-1)")
    parser.add_argument(
        "--provider",
        default="openai",
        choices=["openai", "gemini", "claude"],
        help="Cloud provider used for the cue",
    )
    parser.add_argument("--rtsp-url", default=None, help="Overrides VISUAL_TRIGGER_RTSP_URL")
    return parser.parse_args(argv)


def _print_event(event: TriggerEvent) -> None:
    print(
        f"[{event.t:7.1f}s] {event.detection.label} "
        f"({event.detection.confidence:.0%}) in session {event.session_id}"
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = EngineSettings()
    if args.rtsp_url:
        settings = settings.model_copy(update={"rtsp_url": args.rtsp_url})
    configure_logging(settings.log_level)

    store = JsonTriggerConfigStore(settings.trigger_config_path)
    store.update_trigger_config(args.workflow, enabled=True)
    cue = store.add_visual_trigger(
        args.workflow,
        label=args.label,
        threshold=args.threshold,
        query=args.query,
        provider=args.provider,
    )

    registry = VisualTriggerRegistry(
        config_store=store,
        settings=settings,
        frame_source_factory=lambda _session_id: FfmpegFrameExtractor.from_settings(settings),
    )
    session = registry.start_session(
        "example-session", args.workflow, args.provider, callbacks=[_print_event]
    )
    print(f"Session state: {session.state.value}")

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        registry.stop_all()
        store.remove_visual_trigger(args.workflow, cue.id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
