from __future__ import annotations

from enum import Enum

from visual_trigger_engine.errors import IllegalTransitionError

__all__ = ["ALLOWED_TRANSITIONS", "EngineState", "IllegalTransitionError", "transition"]


class EngineState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"


ALLOWED_TRANSITIONS: dict[EngineState, set[EngineState]] = {
    EngineState.IDLE: {EngineState.ACTIVE, EngineState.STOPPED},
    EngineState.ACTIVE: {EngineState.STOPPED},
    EngineState.STOPPED: set(),
}


def transition(*, current: EngineState, to: EngineState) -> EngineState:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to
