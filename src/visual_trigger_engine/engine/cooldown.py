"""Per-trigger cooldown and global frame-sampling throttle.

All timestamps are seconds on a monotonic clock supplied by the caller; the
ledger never reads the clock itself.
"""

from __future__ import annotations

import threading


def cooldown_elapsed(last: float | None, now: float, interval: float) -> bool:
    """Return True when at least `interval` seconds have passed since `last`.

    A trigger that never fired (``last is None``) is always ready.
    """

    if last is None:
        return True
    return now - last >= interval


class CooldownLedger:
    """Last-fired timestamps per trigger id plus the last frame-check timestamp.

    Check-and-record operations hold an internal lock so the periodic cycle and
    the push path cannot both admit the same trigger inside one cooldown window.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_fired: dict[str, float] = {}
        self._last_frame_check: float | None = None

    def last_fired(self, trigger_id: str) -> float | None:
        with self._lock:
            return self._last_fired.get(trigger_id)

    @property
    def last_frame_check(self) -> float | None:
        with self._lock:
            return self._last_frame_check

    def is_ready(self, trigger_id: str, now: float, cooldown: float) -> bool:
        """Read-only cooldown check; does not touch the ledger."""

        with self._lock:
            return cooldown_elapsed(self._last_fired.get(trigger_id), now, cooldown)

    def remaining(self, trigger_id: str, now: float, cooldown: float) -> float:
        with self._lock:
            last = self._last_fired.get(trigger_id)
        if last is None:
            return 0.0
        return max(0.0, cooldown - (now - last))

    def try_fire(self, trigger_id: str, now: float, cooldown: float) -> bool:
        """Record a firing if the trigger is out of cooldown.

        Returns False (and leaves the ledger untouched) when still cooling down.
        """

        with self._lock:
            if not cooldown_elapsed(self._last_fired.get(trigger_id), now, cooldown):
                return False
            self._last_fired[trigger_id] = now
            return True

    def try_begin_frame_check(self, now: float, min_interval: float) -> bool:
        """Claim the next frame-extraction slot.

        The timestamp is recorded as soon as the attempt is allowed, whatever the
        outcome of the extraction that follows.
        """

        with self._lock:
            if not cooldown_elapsed(self._last_frame_check, now, min_interval):
                return False
            self._last_frame_check = now
            return True

    def clear(self) -> None:
        with self._lock:
            self._last_fired.clear()
            self._last_frame_check = None
