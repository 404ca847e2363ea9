"""Shared fakes: an in-memory connection and a scheduler driven by hand."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple

import pytest

from gomoku.coordinator import SessionCoordinator
from gomoku.registry import RoomRegistry


class RecordingConnection:
    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.is_open = True

    def deliver(self, payload: Dict[str, Any]) -> None:
        if self.is_open:
            self.sent.append(payload)

    def of_type(self, kind: str) -> List[Dict[str, Any]]:
        return [p for p in self.sent if p["type"] == kind]

    def last(self, kind: str) -> Dict[str, Any]:
        return self.of_type(kind)[-1]

    def clear(self) -> None:
        self.sent.clear()


class ManualScheduler:
    """Collects callbacks and fires them when the test advances the clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self._pending: List[Tuple[float, int, Callable[[], None]]] = []
        self._seq = 0

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        self._seq += 1
        self._pending.append((self.now + delay, self._seq, callback))

    @property
    def pending(self) -> int:
        return len(self._pending)

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(p for p in self._pending if p[0] <= self.now)
        self._pending = [p for p in self._pending if p[0] > self.now]
        for _, _, callback in due:
            callback()


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> RoomRegistry:
    return RoomRegistry(ttl_seconds=600, clock=clock)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def coordinator(registry: RoomRegistry, scheduler: ManualScheduler) -> SessionCoordinator:
    return SessionCoordinator(registry, scheduler, ai_delay=0.2)


@pytest.fixture
def connect() -> Callable[[], RecordingConnection]:
    return RecordingConnection
