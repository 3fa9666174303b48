"""
Sample statistics over latency samples (milliseconds).

Pure functions with no state of their own:
- percentile(): nearest-rank style lookup at floor(len * p), clamped
- build_histogram(): equal-width bucket counts over [min, max]
- render_histogram(): bar rendering that preserves relative bucket sizes
"""

import math
from typing import List, Sequence

BAR_CHAR = "█"


def percentile(samples: Sequence[float], p: float) -> float:
    """
    Return the sample at index floor(len * p) of the ascending sort.

    The index is clamped to len - 1, so p=1.0 yields the maximum and
    p=0.0 the minimum.
    """
    if not samples:
        raise ValueError("percentile() requires at least one sample")
    ordered = sorted(samples)
    index = min(len(ordered) - 1, int(math.floor(len(ordered) * p)))
    return ordered[max(0, index)]


def build_histogram(samples: Sequence[float], bins: int = 10) -> List[int]:
    """
    Count samples into `bins` equal-width buckets spanning [min, max].

    Empty input yields `bins` zero buckets. Constant input (min == max)
    yields a single bucket holding every sample.
    """
    if bins < 1:
        raise ValueError(f"bins must be >= 1, got {bins}")
    if not samples:
        return [0] * bins

    lo = min(samples)
    hi = max(samples)
    if lo == hi:
        return [len(samples)]

    step = (hi - lo) / bins
    hist = [0] * bins
    for value in samples:
        # Clamp: rounding can push the max past the last boundary
        idx = min(bins - 1, int(math.floor((value - lo) / step)))
        hist[idx] += 1
    return hist


def render_histogram(hist: Sequence[int], width: int = 10) -> str:
    """Render bucket counts as space-separated bars scaled to the largest bucket."""
    if not hist:
        return ""
    peak = max(hist)
    if peak == 0:
        return ""
    return " ".join(
        BAR_CHAR * int(round(count / peak * width)) if count else ""
        for count in hist
    )
