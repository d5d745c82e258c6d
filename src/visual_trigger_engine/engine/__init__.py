"""Visual trigger engine: cooldowns, scheduling, emission and the session registry."""

from visual_trigger_engine.engine.cooldown import CooldownLedger, cooldown_elapsed
from visual_trigger_engine.engine.events import (
    EventEnvelope,
    TriggerEvent,
    TriggerEventEmitter,
)
from visual_trigger_engine.engine.registry import VisualTriggerRegistry
from visual_trigger_engine.engine.scheduler import VisualTriggerSession
from visual_trigger_engine.engine.state_machine import EngineState, IllegalTransitionError

__all__ = [
    "CooldownLedger",
    "EngineState",
    "EventEnvelope",
    "IllegalTransitionError",
    "TriggerEvent",
    "TriggerEventEmitter",
    "VisualTriggerRegistry",
    "VisualTriggerSession",
    "cooldown_elapsed",
]
