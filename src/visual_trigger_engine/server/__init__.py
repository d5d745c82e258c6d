"""FastAPI server adapter for the visual trigger engine.

Design intent:
- Keep detection logic in `visual_trigger_engine.engine.*`
- Keep transport concerns (routing, CORS, websocket fan-out) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from visual_trigger_engine.server.app import create_app
