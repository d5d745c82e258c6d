"""Visual trigger engine.

Samples frames from a live stream, asks a pluggable detector whether any
configured visual cue is present, and emits debounced, rate-limited
`AUTO_TRIGGER_DETECTED` events.
"""

__version__ = "0.1.0"

from visual_trigger_engine.config import EngineSettings
from visual_trigger_engine.engine.registry import VisualTriggerRegistry
from visual_trigger_engine.engine.scheduler import VisualTriggerSession

__all__ = ["__version__", "EngineSettings", "VisualTriggerRegistry", "VisualTriggerSession"]
