"""Synchronous multi-subscriber notifications for instrumented calls."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple
import threading

PROFILE = "profile"
THRESHOLD = "threshold"
OPTIMIZATION = "optimization"

EVENTS = (PROFILE, THRESHOLD, OPTIMIZATION)

Listener = Callable[[str, Any], None]


@dataclass(frozen=True)
class ProfileEvent:
    """A single profiled call."""

    duration_ms: float
    call_count: int
    args: Tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ThresholdEvent:
    """Hot value exceeded the function's minimum-time threshold at analysis."""

    hot_ms: float
    threshold_ms: float


@dataclass(frozen=True)
class OptimizationEvent:
    """The function's active callee was replaced."""

    kind: str


class EventEmitter:
    """
    Delivers events in-line, in subscription order.

    Listeners run before the instrumented call returns; an exception raised
    by a listener propagates to the caller.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {e: [] for e in EVENTS}
        self._lock = threading.Lock()

    def on(self, event: str, callback: Listener) -> None:
        self._check_event(event)
        with self._lock:
            self._listeners[event].append(callback)

    def off(self, event: str, callback: Listener) -> None:
        self._check_event(event)
        with self._lock:
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

    def has_listeners(self, event: str) -> bool:
        return bool(self._listeners.get(event))

    def emit(self, event: str, name: str, payload: Any) -> None:
        self._check_event(event)
        with self._lock:
            listeners = list(self._listeners[event])
        for callback in listeners:
            callback(name, payload)

    def clear(self) -> None:
        with self._lock:
            for listeners in self._listeners.values():
                listeners.clear()

    def _check_event(self, event: str) -> None:
        if event not in self._listeners:
            raise ValueError(
                f"Unknown event: {event!r} (expected one of {', '.join(EVENTS)})"
            )
