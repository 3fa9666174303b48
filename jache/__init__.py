"""Jache: call-time profiler with percentile hot detection and safe memoization."""

from jache.events import OptimizationEvent, ProfileEvent, ThresholdEvent
from jache.instrument import FunctionStatistics, OptimizationKind, WrapperState
from jache.memo_cache import make_cache_key, memoize
from jache.profiler import SmartProfiler, get_profiler, profile, set_profiler
from jache.purity import PurityGatekeeper, is_pure
from jache.schemas import DEFAULT_CONFIG, ProfilerConfig
from jache.statistics import build_histogram, percentile, render_histogram

Jache = SmartProfiler
default_config = dict(DEFAULT_CONFIG)

__all__ = [
    "Jache",
    "SmartProfiler",
    "FunctionStatistics",
    "WrapperState",
    "OptimizationKind",
    "ProfileEvent",
    "ThresholdEvent",
    "OptimizationEvent",
    "ProfilerConfig",
    "PurityGatekeeper",
    "default_config",
    "get_profiler",
    "set_profiler",
    "profile",
    "is_pure",
    "memoize",
    "make_cache_key",
    "percentile",
    "build_histogram",
    "render_histogram",
]
