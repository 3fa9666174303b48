"""
Unit tests for memoization and cache key encoding.

Run with: uv run pytest tests/test_memo_cache.py -v
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from jache.memo_cache import make_cache_key, memoize, UncacheableArgument


class Vec:
    """Value object whose repr hides its contents."""

    def __init__(self, items):
        self.items = tuple(items)

    def __repr__(self):
        return f"Vec(len={len(self.items)})"

    def __eq__(self, other):
        return isinstance(other, Vec) and self.items == other.items

    def __hash__(self):
        return hash(self.items)


class Grid:
    """Unhashable container with an abbreviated repr, like an array."""

    __hash__ = None

    def __init__(self, cells):
        self.cells = list(cells)

    def __repr__(self):
        return f"Grid(size={len(self.cells)})"


class TestCacheKey:
    """Tests for make_cache_key()."""

    def test_structurally_equal_arguments_share_key(self):
        assert make_cache_key((1, [2, 3], {"a": 1}), {}) == make_cache_key(
            (1, [2, 3], {"a": 1}), {}
        )

    def test_types_are_distinguished(self):
        keys = {
            make_cache_key((1,), {}),
            make_cache_key(("1",), {}),
            make_cache_key((1.0,), {}),
            make_cache_key((True,), {}),
        }
        assert len(keys) == 4

    def test_positional_order_matters(self):
        assert make_cache_key((2, 3), {}) != make_cache_key((3, 2), {})

    def test_list_and_tuple_differ(self):
        assert make_cache_key(([1, 2],), {}) != make_cache_key(((1, 2),), {})

    def test_dict_and_set_ordering_is_canonical(self):
        assert make_cache_key(({"a": 1, "b": 2},), {}) == make_cache_key(
            ({"b": 2, "a": 1},), {}
        )
        assert make_cache_key(({3, 1, 2},), {}) == make_cache_key(({1, 2, 3},), {})

    def test_keyword_order_is_canonical(self):
        assert make_cache_key((), {"x": 1, "y": 2}) == make_cache_key(
            (), {"y": 2, "x": 1}
        )

    def test_keyword_and_positional_differ(self):
        assert make_cache_key((1,), {}) != make_cache_key((), {"x": 1})


class TestMemoize:
    """Tests for memoize()."""

    def test_hit_skips_underlying_call(self):
        calls = []

        def add(a, b):
            calls.append((a, b))
            return a + b

        cached = memoize(add)

        assert cached(2, 3) == 5
        assert cached(2, 3) == 5
        assert len(calls) == 1

        assert cached(3, 2) == 5
        assert len(calls) == 2

    def test_cache_info_and_clear(self):
        cached = memoize(lambda x: x * 2)

        cached(1)
        cached(1)
        cached(2)
        assert cached.cache_info() == {"hits": 1, "misses": 2, "bypassed": 0, "size": 2}

        cached.cache_clear()
        assert cached.cache_info() == {"hits": 0, "misses": 0, "bypassed": 0, "size": 0}

    def test_exceptions_are_not_cached(self):
        attempts = []

        def flaky(x):
            attempts.append(x)
            if len(attempts) == 1:
                raise RuntimeError("first call fails")
            return x

        cached = memoize(flaky)

        with pytest.raises(RuntimeError):
            cached(1)
        assert cached(1) == 1
        assert cached(1) == 1
        assert len(attempts) == 2

    def test_none_result_is_cached(self):
        calls = []

        def nothing(x):
            calls.append(x)
            return None

        cached = memoize(nothing)
        cached("a")
        cached("a")
        assert calls == ["a"]

    def test_preserves_metadata(self):
        def documented(x):
            """Doubles x."""
            return x * 2

        cached = memoize(documented)
        assert cached.__name__ == "documented"
        assert cached.__doc__ == "Doubles x."


class TestOpaqueArguments:
    """Arguments without a structural encoding."""

    def test_equal_reprs_do_not_share_key(self):
        assert repr(Vec([1, 2, 3])) == repr(Vec([10, 20, 30]))
        assert make_cache_key((Vec([1, 2, 3]),), {}) != make_cache_key(
            (Vec([10, 20, 30]),), {}
        )

    def test_equal_hashable_objects_share_key(self):
        assert make_cache_key((Vec([1, 2]),), {}) == make_cache_key((Vec([1, 2]),), {})

    def test_hashable_objects_keyed_by_value(self):
        cached = memoize(lambda v: sum(v.items))

        assert cached(Vec([1, 2, 3])) == 6
        assert cached(Vec([10, 20, 30])) == 60
        assert cached(Vec([1, 2, 3])) == 6
        assert cached.cache_info()["hits"] == 1

    def test_unhashable_objects_have_no_key(self):
        with pytest.raises(UncacheableArgument):
            make_cache_key((Grid([0] * 2000),), {})
        with pytest.raises(UncacheableArgument):
            make_cache_key((), {"grid": [Grid([1])]})

    def test_unhashable_objects_bypass_cache(self):
        calls = []

        def total(grid):
            calls.append(grid)
            return sum(grid.cells)

        cached = memoize(total)
        zeros = Grid([0] * 2000)
        changed = Grid([0] * 2000)
        changed.cells[1000] = 7

        assert cached(zeros) == 0
        assert cached(changed) == 7
        assert len(calls) == 2
        assert cached.cache_info() == {
            "hits": 0,
            "misses": 0,
            "bypassed": 2,
            "size": 0,
        }

    def test_nan_arguments_hit(self):
        cached = memoize(lambda x: x)
        cached(float("nan"))
        cached(float("nan"))
        assert cached.cache_info()["hits"] == 1
