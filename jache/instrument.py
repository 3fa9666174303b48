"""
Per-function instrumentation state machine.

    COLD ──(profile_after calls)──▶ OBSERVING ──(100 samples)──▶ ANALYZED
                                                                   │
                                     hot + memoize + pure ─────────▶ OPTIMIZED

- COLD: calls go straight to the active callee, no clock reads
- OBSERVING: every call is timed; samples feed the rolling history and
  the one-shot analysis buffer
- ANALYZED / OPTIMIZED: statistics are fixed; calls are still timed and
  appended to the rolling history

The active callee is a single mutable slot. Analysis may write it once
(installing the memoized callee); nothing ever removes it afterwards.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from jache.events import (
    OPTIMIZATION,
    PROFILE,
    THRESHOLD,
    EventEmitter,
    OptimizationEvent,
    ProfileEvent,
    ThresholdEvent,
)
from jache.memo_cache import memoize
from jache.purity import PurityGatekeeper
from jache.schemas import ResolvedSettings
from jache.statistics import build_histogram, percentile
from jache.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
#                            ENUMS & CONSTANTS
# =============================================================================


class WrapperState(Enum):
    """Lifecycle of one instrumented function."""

    COLD = "cold"  # Below profile_after, untimed fast path
    OBSERVING = "observing"  # Timing calls, filling the analysis buffer
    ANALYZED = "analyzed"  # Statistics published, callee unchanged
    OPTIMIZED = "optimized"  # Statistics published, callee replaced


class OptimizationKind(str, Enum):
    MEMOIZED = "memoized"


# Whether each kind preserves behavior for functions that pass the purity gate
OPTIMIZATION_SAFETY: Dict[OptimizationKind, bool] = {
    OptimizationKind.MEMOIZED: True,
}

ANALYSIS_SAMPLE_SIZE = 100


def default_clock() -> float:
    """Monotonic time in milliseconds."""
    return time.perf_counter() * 1000.0


# =============================================================================
#                            DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class FunctionStatistics:
    """
    Snapshot published once per function, when its analysis buffer fills.

    median/hot/min/max come from the 100-sample analysis buffer; histogram
    and history come from the rolling history at that instant.
    """

    name: str
    median: float
    hot: float
    min: float
    max: float
    count: int
    histogram: Tuple[int, ...] = ()
    history: Tuple[float, ...] = ()
    optimization: Optional[str] = None

    def to_dict(self) -> dict:
        """Export to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "median": self.median,
            "hot": self.hot,
            "min": self.min,
            "max": self.max,
            "count": self.count,
            "histogram": list(self.histogram),
            "history": list(self.history),
            "optimization": self.optimization,
        }


Publisher = Callable[[FunctionStatistics, Optional[str]], None]


# =============================================================================
#                            INSTRUMENT
# =============================================================================


class FunctionInstrument:
    """
    Owns all mutable state for one registered function.

    One lock guards the counter, analysis buffer, rolling history and callee
    swap. The callee runs outside the lock and listeners are notified after
    it is released, so a listener may safely call the wrapper again.

    Only the synchronous part of a call is measured: for a coroutine function
    that is the time to create the coroutine, not to await it.
    """

    def __init__(
        self,
        fn: Callable,
        name: str,
        settings: ResolvedSettings,
        history: Deque[float],
        emitter: EventEmitter,
        publish: Publisher,
        clock: Callable[[], float] = default_clock,
        gatekeeper: Optional[PurityGatekeeper] = None,
    ):
        self.fn = fn
        self.name = name
        self.settings = settings
        self._history = history
        self._emitter = emitter
        self._publish = publish
        self._clock = clock
        self._gatekeeper = gatekeeper or PurityGatekeeper()

        self._active: Callable = fn
        self._buffer: List[float] = []
        self._call_count = 0
        self._statistics: Optional[FunctionStatistics] = None
        self._optimization: Optional[str] = None
        self._lock = threading.Lock()

        self._state = (
            WrapperState.COLD if settings.profile_after > 0 else WrapperState.OBSERVING
        )
        logger.debug(
            f"Instrumented {name} (state={self._state.value}, "
            f"profile_after={settings.profile_after}, memoize={settings.memoize})"
        )

    @property
    def state(self) -> WrapperState:
        return self._state

    @property
    def call_count(self) -> int:
        return self._call_count

    @property
    def active_callee(self) -> Callable:
        return self._active

    @property
    def optimization(self) -> Optional[str]:
        return self._optimization

    def history(self) -> List[float]:
        """Copy of the rolling history, taken under the instrument lock."""
        with self._lock:
            return list(self._history)

    def statistics(self) -> Optional[FunctionStatistics]:
        """This function's published snapshot, or None before analysis."""
        return self._statistics

    def __call__(self, *args, **kwargs):
        if self._state is WrapperState.COLD:
            return self._call_cold(args, kwargs)
        return self._call_profiled(args, kwargs)

    def _call_cold(self, args: Tuple, kwargs: Dict[str, Any]) -> Any:
        result = self._active(*args, **kwargs)
        with self._lock:
            self._call_count += 1
            if (
                self._state is WrapperState.COLD
                and self._call_count >= self.settings.profile_after
            ):
                self._state = WrapperState.OBSERVING
                logger.debug(
                    f"{self.name}: activated after {self._call_count} calls"
                )
        return result

    def _call_profiled(self, args: Tuple, kwargs: Dict[str, Any]) -> Any:
        callee = self._active
        start = self._clock()
        # A raising callee propagates here and leaves no sample behind
        result = callee(*args, **kwargs)
        duration = self._clock() - start

        pending: List[Tuple[str, Any]] = []
        with self._lock:
            self._call_count += 1
            call_count = self._call_count
            self._history.append(duration)
            if self._state is WrapperState.OBSERVING:
                self._buffer.append(duration)
                if len(self._buffer) >= ANALYSIS_SAMPLE_SIZE:
                    pending = self._analyze()

        if self._emitter.has_listeners(PROFILE):
            self._emitter.emit(
                PROFILE,
                self.name,
                ProfileEvent(
                    duration_ms=duration,
                    call_count=call_count,
                    args=args,
                    kwargs=dict(kwargs),
                ),
            )
        for event, payload in pending:
            self._emitter.emit(event, self.name, payload)
        return result

    def _analyze(self) -> List[Tuple[str, Any]]:
        """Derive statistics from the full buffer and decide on optimization. Caller holds the lock."""
        ordered = sorted(self._buffer)
        self._buffer = []

        hot = percentile(ordered, self.settings.hot_percentile)
        threshold = self.settings.min_time_ms
        events: List[Tuple[str, Any]] = []

        if hot > threshold:
            events.append((THRESHOLD, ThresholdEvent(hot_ms=hot, threshold_ms=threshold)))
            if self.settings.memoize and self._allowed(OptimizationKind.MEMOIZED):
                if self._is_pure():
                    self._active = memoize(self.fn)
                    self._optimization = OptimizationKind.MEMOIZED.value
                    events.append(
                        (OPTIMIZATION, OptimizationEvent(kind=self._optimization))
                    )
                else:
                    logger.info(f"{self.name}: hot but not pure, memoization skipped")

        history = tuple(self._history)
        self._statistics = FunctionStatistics(
            name=self.name,
            median=ordered[len(ordered) // 2],
            hot=hot,
            min=ordered[0],
            max=ordered[-1],
            count=self._call_count,
            histogram=tuple(build_histogram(history)),
            history=history,
            optimization=self._optimization,
        )
        self._state = (
            WrapperState.OPTIMIZED if self._optimization else WrapperState.ANALYZED
        )
        self._publish(self._statistics, self._optimization)

        logger.info(
            f"{self.name}: analyzed (hot={hot:.3f}ms, median={self._statistics.median:.3f}ms, "
            f"threshold={threshold}ms, state={self._state.value})"
        )
        return events

    def _allowed(self, kind: OptimizationKind) -> bool:
        return OPTIMIZATION_SAFETY[kind] or not self.settings.safe_optimizations

    def _is_pure(self) -> bool:
        verdict = self._gatekeeper.check(self.fn)
        declared = self.settings.pure
        if declared is not None:
            if verdict.source_available and verdict.is_pure != declared:
                logger.warning(
                    f"{self.name}: declared pure={declared} but heuristic says "
                    f"pure={verdict.is_pure} {verdict.violations}"
                )
            return declared
        if not verdict.source_available:
            logger.warning(
                f"{self.name}: source unavailable, pass pure=True to allow memoization"
            )
        return verdict.is_pure
