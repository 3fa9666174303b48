"""
Argument-keyed memoization.

Cache keys are a canonical, type-tagged structural encoding of the call
arguments, built from hashable tuples:
- builtin scalars carry their type name and exact repr, so 1, 1.0, True
  and "1" never collide
- positional order is significant
- dict items and set members are encoded as frozensets, so construction
  order is not
- keyword arguments are sorted by name
- other hashable objects are keyed by the object itself (its __eq__/__hash__)
- unhashable objects with no structural encoding (arrays, frames) have no
  key; calls carrying them bypass the cache

The cache is unbounded. It is only installed for functions already judged
pure, which are assumed to have a bounded, meaningful input domain.
"""

from functools import wraps
from typing import Any, Callable, Dict, Hashable, Tuple
import threading

# Exact types only: a subclass may override __repr__
_SCALARS = (type(None), bool, int, float, complex, str, bytes)


class UncacheableArgument(TypeError):
    """An argument has neither a structural encoding nor a hash."""


def _type_tag(value: Any) -> str:
    cls = type(value)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def _encode(value: Any) -> Hashable:
    """Structural encoding of a single value."""
    tag = _type_tag(value)

    if type(value) in _SCALARS:
        # repr() of builtin scalars is exact, and keeps NaN equal to itself
        return (tag, repr(value))

    if isinstance(value, (list, tuple)):
        return (tag, tuple(_encode(v) for v in value))

    if isinstance(value, dict):
        return (tag, frozenset((_encode(k), _encode(v)) for k, v in value.items()))

    if isinstance(value, (set, frozenset)):
        return (tag, frozenset(_encode(v) for v in value))

    try:
        hash(value)
    except TypeError:
        raise UncacheableArgument(f"Cannot key argument of type {tag}") from None
    return (tag, value)


def make_cache_key(args: Tuple, kwargs: Dict[str, Any]) -> Hashable:
    """
    Encode a call's arguments into a deterministic, hashable key.

    Raises UncacheableArgument when an argument cannot be keyed exactly.
    """
    encoded_args = tuple(_encode(a) for a in args)
    encoded_kwargs = tuple((k, _encode(kwargs[k])) for k in sorted(kwargs))
    return (encoded_args, encoded_kwargs)


def memoize(fn: Callable) -> Callable:
    """
    Wrap fn with an unbounded argument-keyed result cache.

    Exceptions raised by fn are not cached. Calls whose arguments cannot be
    keyed go straight to fn. The returned callable exposes cache_info() and
    cache_clear().
    """
    cache: Dict[Hashable, Any] = {}
    counters = {"hits": 0, "misses": 0, "bypassed": 0}
    lock = threading.Lock()

    @wraps(fn)
    def memoized(*args, **kwargs):
        try:
            key = make_cache_key(args, kwargs)
        except UncacheableArgument:
            with lock:
                counters["bypassed"] += 1
            return fn(*args, **kwargs)

        with lock:
            if key in cache:
                counters["hits"] += 1
                return cache[key]
            counters["misses"] += 1

        result = fn(*args, **kwargs)

        with lock:
            cache[key] = result
        return result

    def cache_info() -> Dict[str, int]:
        with lock:
            return {**counters, "size": len(cache)}

    def cache_clear() -> None:
        with lock:
            cache.clear()
            for name in counters:
                counters[name] = 0

    memoized.cache_info = cache_info
    memoized.cache_clear = cache_clear
    return memoized
