"""
Smart Profiler for Jache

Instruments functions at call time, collects latency samples, flags hot
functions by percentile, and memoizes the hot ones that look pure.

Lifecycle of a registered function:
- Lazy activation: the first `profile_after` calls run untimed
- Observation: each call is timed into a rolling history and an analysis buffer
- Analysis: after 100 profiled calls, median/hot/min/max are published once
- Optimization: if hot > min_time_ms, memoize was requested and the
  function passes the purity gatekeeper, calls are served from a cache

Usage:
    from jache import SmartProfiler

    profiler = SmartProfiler(min_time_ms=0.5)

    fast_fib = profiler.register(fibonacci, "fibonacci", memoize=True)

    @profiler.wrap(memoize=True, profile_after=50)
    def distance(x1, y1, x2, y2):
        return ((x2 - x1) ** 2 + (y2 - y1) ** 2) ** 0.5

    profiler.on("optimization", lambda name, event: print(name, event.kind))
    print(profiler.summary())

Thresholds passed to register() are fixed at wrap time. set_thresholds()
only affects functions registered afterwards under that name.
"""

import threading
from collections import deque
from functools import wraps
from typing import Any, Callable, Deque, Dict, List, Optional, TypeVar

from jache.events import EventEmitter, Listener
from jache.instrument import (
    FunctionInstrument,
    FunctionStatistics,
    default_clock,
)
from jache.purity import PurityGatekeeper
from jache.schemas import (
    ProfileOptions,
    ProfilerConfig,
    ThresholdOverride,
    resolve_settings,
)
from jache.statistics import build_histogram, render_histogram
from jache.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=Callable[..., Any])


# =============================================================================
#                            MAIN PROFILER CLASS
# =============================================================================


class SmartProfiler:
    """
    Registry of instrumented functions.

    Owns the name-keyed maps for statistics, optimizations, instruments and
    threshold overrides. Each wrapper keeps its own call state and rolling
    history and only writes its results back into these maps.

    Registering two functions under one name is allowed; every map then holds
    whichever record was written last.
    """

    def __init__(
        self,
        hot_percentile: float = 0.95,
        min_time_ms: float = 1.0,
        safe_optimizations: bool = True,
        history_size: int = 1000,
        profile_after: int = 0,
        clock: Optional[Callable[[], float]] = None,
        config: Optional[ProfilerConfig] = None,
    ):
        """
        Initialize the SmartProfiler.

        Args:
            hot_percentile: Percentile (0-1) of the analysis buffer used as the hot value
            min_time_ms: Hot value above which a function counts as hot
            safe_optimizations: Only apply optimization kinds declared safe
            history_size: Rolling history length per function
            profile_after: Calls served untimed before profiling starts
            clock: Zero-argument callable returning milliseconds
            config: Prebuilt config; takes precedence over the keyword values
        """
        self.config = config or ProfilerConfig(
            hot_percentile=hot_percentile,
            min_time_ms=min_time_ms,
            safe_optimizations=safe_optimizations,
            history_size=history_size,
            profile_after=profile_after,
        )
        self.clock = clock or default_clock
        self.events = EventEmitter()
        self.gatekeeper = PurityGatekeeper()

        self._stats: Dict[str, FunctionStatistics] = {}
        self._optimized: Dict[str, str] = {}
        self._thresholds: Dict[str, ThresholdOverride] = {}
        self._instruments: Dict[str, FunctionInstrument] = {}
        self._lock = threading.Lock()

        logger.info(
            f"SmartProfiler initialized (hot_percentile={self.config.hot_percentile}, "
            f"min_time_ms={self.config.min_time_ms}, "
            f"profile_after={self.config.profile_after})"
        )

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(
        self,
        fn: T,
        name: Optional[str] = None,
        *,
        memoize: bool = False,
        min_time_ms: Optional[float] = None,
        percentile: Optional[float] = None,
        history_size: Optional[int] = None,
        profile_after: Optional[int] = None,
        pure: Optional[bool] = None,
    ) -> T:
        """
        Wrap fn for profiling and return the wrapper.

        Args:
            fn: The function to instrument
            name: Registry key; defaults to fn.__name__
            memoize: Allow memoization once the function is hot and pure
            min_time_ms: Per-function hot threshold
            percentile: Per-function hot percentile
            history_size: Per-function rolling history length
            profile_after: Per-function lazy activation count
            pure: Explicit purity declaration, overrides the source heuristic

        Returns:
            Wrapper with the same call signature as fn. It exposes
            `.instrument` and `.statistics()`.
        """
        if not callable(fn):
            raise TypeError(f"register() expects a callable, got {type(fn).__name__}")
        name = name or getattr(fn, "__name__", "anonymous")

        options = ProfileOptions(
            memoize=memoize,
            min_time_ms=min_time_ms,
            percentile=percentile,
            history_size=history_size,
            profile_after=profile_after,
            pure=pure,
        )

        with self._lock:
            if name in self._instruments:
                logger.warning(f"Function '{name}' registered twice, last write wins")
            stored = self._thresholds.get(name)
            settings = resolve_settings(self.config, options, stored)
            explicit = options.thresholds()
            if explicit is not None:
                merged = stored.model_dump() if stored else {}
                merged.update(explicit.model_dump(exclude_none=True))
                self._thresholds[name] = ThresholdOverride(**merged)
            history: Deque[float] = deque(maxlen=settings.history_size)

            instrument = FunctionInstrument(
                fn,
                name,
                settings,
                history=history,
                emitter=self.events,
                publish=lambda stats, kind: self._publish(name, stats, kind),
                clock=self.clock,
                gatekeeper=self.gatekeeper,
            )
            self._instruments[name] = instrument

        @wraps(fn)
        def wrapper(*args, **kwargs):
            return instrument(*args, **kwargs)

        wrapper.instrument = instrument
        wrapper.statistics = instrument.statistics
        return wrapper

    def wrap(self, func: Optional[Callable] = None, *, name: str = "", **options) -> Callable:
        """
        Decorator form of register().

        Usage:
            @profiler.wrap
            def my_function():
                pass

            @profiler.wrap(name="custom_name", memoize=True)
            def another_function(x):
                return x * 2
        """

        def decorator(fn: Callable) -> Callable:
            return self.register(fn, name or None, **options)

        if func is not None:
            return decorator(func)
        return decorator

    def set_thresholds(
        self,
        name: str,
        *,
        min_time_ms: Optional[float] = None,
        percentile: Optional[float] = None,
    ) -> None:
        """
        Store threshold overrides for the next register() under `name`.

        Wrappers that already exist keep the thresholds they were built with.
        """
        override = ThresholdOverride(min_time_ms=min_time_ms, percentile=percentile)
        with self._lock:
            self._thresholds[name] = override
        logger.debug(f"Thresholds stored for {name}: {override.model_dump()}")

    def _publish(
        self, name: str, stats: FunctionStatistics, optimization: Optional[str]
    ) -> None:
        with self._lock:
            self._stats[name] = stats
            if optimization:
                self._optimized[name] = optimization

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def on(self, event: str, callback: Listener) -> None:
        """Subscribe to 'profile', 'threshold' or 'optimization'."""
        self.events.on(event, callback)

    def off(self, event: str, callback: Listener) -> None:
        """Unsubscribe a previously registered callback."""
        self.events.off(event, callback)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_statistics(self) -> List[FunctionStatistics]:
        """Snapshots of every analyzed function, in analysis order."""
        with self._lock:
            return list(self._stats.values())

    def get_function_statistics(self, name: str) -> Optional[FunctionStatistics]:
        with self._lock:
            return self._stats.get(name)

    def get_history(self, name: str) -> List[float]:
        """Copy of the rolling history for `name` (empty if unknown)."""
        with self._lock:
            instrument = self._instruments.get(name)
        return instrument.history() if instrument is not None else []

    def get_optimizations(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._optimized)

    def histogram(self, name: str, bins: int = 10) -> List[int]:
        """Live histogram over the current rolling history of `name`."""
        return build_histogram(self.get_history(name), bins)

    def hot_functions(self, top_n: int = 5) -> List[FunctionStatistics]:
        """Analyzed functions sorted by hot value, slowest first."""
        return sorted(self.get_statistics(), key=lambda s: s.hot, reverse=True)[:top_n]

    def summary(self, top_n: int = 5) -> str:
        """Human-readable report of the hottest functions."""
        hot = self.hot_functions(top_n)
        lines = ["═══ HOT FUNCTIONS ═══"]
        if not hot:
            lines.append("  (no functions analyzed yet)")
        for s in hot:
            line = (
                f"  {s.name:<25} | hot: {s.hot:.2f}ms | median: {s.median:.2f}ms "
                f"| calls: {s.count}"
            )
            if s.optimization:
                line += f" | {s.optimization}"
            lines.append(line)
            bars = render_histogram(s.histogram)
            if bars:
                lines.append(f"    {bars}")
        return "\n".join(lines)

    def reset(self) -> None:
        """
        Clear statistics, optimizations, registrations and stored thresholds.

        Existing wrappers keep working with their own state. They analyze only
        once, so they do not republish after a reset.
        """
        with self._lock:
            self._stats.clear()
            self._optimized.clear()
            self._thresholds.clear()
            self._instruments.clear()
        logger.info("SmartProfiler reset")


# =============================================================================
#                            CONVENIENCE FUNCTIONS
# =============================================================================

# Global default profiler instance
_default_profiler: Optional[SmartProfiler] = None


def get_profiler() -> SmartProfiler:
    """Get or create the default profiler instance."""
    global _default_profiler
    if _default_profiler is None:
        _default_profiler = SmartProfiler(config=ProfilerConfig.from_env())
    return _default_profiler


def set_profiler(profiler: Optional[SmartProfiler]) -> None:
    """Set the default profiler instance."""
    global _default_profiler
    _default_profiler = profiler


def profile(fn: T, name: Optional[str] = None, **options) -> T:
    """Wrap fn with a fresh, default-configured profiler."""
    return SmartProfiler().register(fn, name, **options)


# =============================================================================
#                            SELF-TEST
# =============================================================================

if __name__ == "__main__":
    print("=" * 60)
    print("SMART PROFILER SELF-TEST")
    print("=" * 60)

    def fibonacci(n: int) -> int:
        if n <= 1:
            return n
        return fibonacci(n - 1) + fibonacci(n - 2)

    profiler = SmartProfiler(min_time_ms=0.0)
    profiler.on("optimization", lambda name, event: print(f"{name} -> {event.kind}"))

    fast_fib = profiler.register(fibonacci, "fibonacci", memoize=True)
    for _ in range(150):
        fast_fib(20)

    print(profiler.summary())
    print(f"Optimizations: {profiler.get_optimizations()}")
    print(f"Cache: {fast_fib.instrument.active_callee.cache_info()}")
