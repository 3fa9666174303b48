"""
Unit tests for the purity gatekeeper.

Run with: uv run pytest tests/test_purity.py -v
"""

import math
import random
import time
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from jache.purity import PurityGatekeeper, TokenScanner, StructureScanner, is_pure


# =============================================================================
#                            SAMPLE FUNCTIONS
# =============================================================================


def add(a, b):
    return a + b


def hypotenuse(x, y):
    return math.sqrt(x * x + y * y)


def stamped(value):
    return (value, time.time())


def noisy(value):
    return value + random.random()


def chatty(value):
    print(value)
    return value


def mentions_clock_in_comment(value):
    # never calls time.time() but the scan still sees it
    return value * 2


_counter = 0


def bump():
    global _counter
    _counter += 1
    return _counter


def countdown(n):
    while n > 0:
        yield n
        n -= 1


async def fetch_value(x):
    return x


# =============================================================================
#                            TESTS
# =============================================================================


class TestIsPure:
    """Tests for the is_pure() shortcut."""

    def test_arithmetic_is_pure(self):
        assert is_pure(add) is True
        assert is_pure(hypotenuse) is True

    def test_wall_clock_read_is_impure(self):
        assert is_pure(stamped) is False

    def test_randomness_is_impure(self):
        assert is_pure(noisy) is False

    def test_console_output_is_impure(self):
        assert is_pure(chatty) is False

    def test_comment_mention_is_impure(self):
        """Tokens in comments count: a known over-approximation."""
        assert is_pure(mentions_clock_in_comment) is False

    def test_global_statement_is_impure(self):
        assert is_pure(bump) is False

    def test_generator_is_impure(self):
        assert is_pure(countdown) is False

    def test_coroutine_is_impure(self):
        assert is_pure(fetch_value) is False

    def test_nested_function_is_checked(self):
        def scale(v, k):
            return v * k

        assert is_pure(scale) is True

    def test_builtin_without_source_is_impure(self):
        assert is_pure(abs) is False


class TestPurityGatekeeper:
    """Tests for PurityGatekeeper verdicts."""

    def test_verdict_lists_violations(self):
        verdict = PurityGatekeeper().check(stamped)

        assert verdict.is_pure is False
        assert verdict.source_available is True
        assert any("CLOCK-001" in v for v in verdict.violations)

    def test_source_unavailable_verdict(self):
        verdict = PurityGatekeeper().check(len)

        assert verdict.is_pure is False
        assert verdict.source_available is False

    def test_callable_interface(self):
        gatekeeper = PurityGatekeeper()
        assert gatekeeper(add) is True
        assert gatekeeper(noisy) is False


class TestScanners:
    """Tests for the individual scanner layers."""

    def test_token_scanner_matches_denylist(self):
        scanner = TokenScanner()
        cases = [
            ("logging.info('x')", "LOG-001"),
            ("requests.get(url)", "NET-001"),
            ("with open(path) as f: pass", "STORE-001"),
            ("threading.Timer(1, cb)", "TIMER-001"),
            ("datetime.now()", "CLOCK-002"),
        ]
        for code, expected in cases:
            findings = scanner.scan(code)
            assert any(expected in f for f in findings), code

    def test_token_scanner_ignores_lookalikes(self):
        scanner = TokenScanner()
        assert scanner.scan("reopen_count = total_time + sprint(3)") == []

    def test_structure_scanner_nonlocal(self):
        code = (
            "def outer():\n"
            "    n = 0\n"
            "    def inner():\n"
            "        nonlocal n\n"
            "        n += 1\n"
            "    return inner\n"
        )
        findings = StructureScanner().scan(code)
        assert any("AST-002" in f for f in findings)

    def test_structure_scanner_handles_indented_source(self):
        code = "    def f(x):\n        return x + 1\n"
        assert StructureScanner().scan(code) == []
