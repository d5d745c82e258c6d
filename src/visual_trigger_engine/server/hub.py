"""Broadcast fan-out to connected transport subscribers."""

from __future__ import annotations

import asyncio
import logging
import threading
from enum import IntEnum
from typing import Protocol

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ReadyState(IntEnum):
    """WebSocket ready states as exposed to browser clients."""

    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


class Subscriber(Protocol):
    @property
    def ready_state(self) -> ReadyState: ...

    def send(self, message: str) -> None: ...


class WebSocketSubscriber:
    """Adapts a FastAPI WebSocket so worker threads can publish to it."""

    def __init__(self, websocket: WebSocket, loop: asyncio.AbstractEventLoop) -> None:
        self._websocket = websocket
        self._loop = loop
        self._state = ReadyState.OPEN

    @property
    def ready_state(self) -> ReadyState:
        return self._state

    def close(self) -> None:
        self._state = ReadyState.CLOSED

    def send(self, message: str) -> None:
        # Fire-and-forget: the engine has no delivery contract.
        asyncio.run_coroutine_threadsafe(self._websocket.send_text(message), self._loop)


class SubscriberHub:
    """Implements the engine's `Broadcaster` over the current subscriber set."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []

    def add(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(subscriber)

    def remove(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def broadcast(self, message: str) -> int:
        """Send to every OPEN subscriber; returns how many were attempted."""

        with self._lock:
            targets = [s for s in self._subscribers if s.ready_state == ReadyState.OPEN]

        sent = 0
        for subscriber in targets:
            try:
                subscriber.send(message)
                sent += 1
            except Exception:
                logger.exception("Failed to send to subscriber")
        return sent
