"""Static purity gatekeeper: token denylist scan plus AST structure checks."""

import ast
import inspect
import re
import textwrap
from dataclasses import dataclass, field
from typing import Callable, Optional

from jache.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class PurityVerdict:
    is_pure: bool
    violations: list[str] = field(default_factory=list)
    source_available: bool = True


@dataclass
class SideEffectPattern:
    id: str
    pattern: str
    message: str


class TokenScanner:
    """
    Denylist scan over raw source text.

    Comments and string literals are scanned too, so a function that merely
    mentions `print(` in a docstring is reported impure.
    """

    PATTERNS: list[SideEffectPattern] = [
        SideEffectPattern("IO-001", r"\bprint\s*\(", "Console output"),
        SideEffectPattern("IO-002", r"\binput\s*\(", "Console input"),
        SideEffectPattern("LOG-001", r"\blogging\.", "Logging call"),
        SideEffectPattern("LOG-002", r"\blogger\.", "Logging call"),
        SideEffectPattern("RAND-001", r"\brandom\.", "Random number generation"),
        SideEffectPattern("RAND-002", r"\bsecrets\.", "Random number generation"),
        SideEffectPattern("RAND-003", r"\buuid\.uuid\d", "Random identifier"),
        SideEffectPattern("RAND-004", r"\bos\.urandom\b", "Random bytes"),
        SideEffectPattern(
            "CLOCK-001",
            r"\btime\.(time|time_ns|perf_counter|perf_counter_ns|monotonic|monotonic_ns|sleep)\b",
            "Wall-clock read",
        ),
        SideEffectPattern(
            "CLOCK-002", r"\bdatetime\.(now|utcnow|today)\b", "Wall-clock read"
        ),
        SideEffectPattern("CLOCK-003", r"\bdate\.today\b", "Wall-clock read"),
        SideEffectPattern("NET-001", r"\brequests\.", "Network access"),
        SideEffectPattern("NET-002", r"\burllib\b", "Network access"),
        SideEffectPattern("NET-003", r"\bhttpx\b", "Network access"),
        SideEffectPattern("NET-004", r"\baiohttp\b", "Network access"),
        SideEffectPattern("NET-005", r"\bsocket\b", "Network access"),
        SideEffectPattern("STORE-001", r"\bopen\s*\(", "File access"),
        SideEffectPattern("STORE-002", r"\bsqlite3\b", "Persistent storage"),
        SideEffectPattern("STORE-003", r"\bshelve\b", "Persistent storage"),
        SideEffectPattern("STORE-004", r"\bos\.environ\b", "Environment access"),
        SideEffectPattern("STORE-005", r"\bpickle\.dump", "Persistent storage"),
        SideEffectPattern("TIMER-001", r"\bthreading\.Timer\b", "Timer scheduling"),
        SideEffectPattern("TIMER-002", r"\bcall_later\b", "Timer scheduling"),
        SideEffectPattern("TIMER-003", r"\basyncio\.sleep\b", "Timer scheduling"),
        SideEffectPattern("TIMER-004", r"\bsched\.", "Timer scheduling"),
    ]

    def scan(self, source: str) -> list[str]:
        findings: list[str] = []
        for p in self.PATTERNS:
            if re.search(p.pattern, source):
                findings.append(f"[{p.id}] {p.message}")
        return findings


class StructureScanner:
    """AST checks for constructs whose results cannot be replayed from a cache."""

    def scan(self, source: str) -> list[str]:
        try:
            tree = ast.parse(textwrap.dedent(source))
        except SyntaxError as e:
            # Lambdas pulled out of a larger expression often fail to parse
            return [f"[AST-000] Unparseable source: {e.msg}"]

        findings: list[str] = []
        for node in ast.walk(tree):
            if isinstance(node, ast.Global):
                findings.append(f"[AST-001] global {', '.join(node.names)}")
            elif isinstance(node, ast.Nonlocal):
                findings.append(f"[AST-002] nonlocal {', '.join(node.names)}")
            elif isinstance(node, (ast.Yield, ast.YieldFrom)):
                findings.append("[AST-003] Generator function")
            elif isinstance(node, ast.AsyncFunctionDef):
                findings.append("[AST-004] Coroutine function")
            elif isinstance(node, ast.Await):
                findings.append("[AST-005] Await expression")
        # ast.walk can visit the same construct class many times
        return list(dict.fromkeys(findings))


class PurityGatekeeper:
    """
    Two-layer purity heuristic.

    Layer 1: Token Scanner - denylisted side-effect identifiers anywhere in source
    Layer 2: Structure Scanner - global/nonlocal, generators, coroutines

    This is a heuristic, not a proof. It misses mutation of module-level
    containers, writes to argument attributes, and calls into impure helpers.
    A function that passes may still be impure; memoizing it then changes
    behavior.
    """

    def __init__(self):
        self.token_scanner = TokenScanner()
        self.structure_scanner = StructureScanner()

    def check(self, fn: Callable) -> PurityVerdict:
        source = self._get_source(fn)
        if source is None:
            return PurityVerdict(
                is_pure=False,
                violations=["Source unavailable"],
                source_available=False,
            )

        violations = self.token_scanner.scan(source)
        violations.extend(self.structure_scanner.scan(source))
        if inspect.iscoroutinefunction(fn) or inspect.isgeneratorfunction(fn):
            violations.append("[RT-001] Coroutine or generator function")

        is_pure = len(violations) == 0
        name = getattr(fn, "__qualname__", repr(fn))
        if is_pure:
            logger.debug(f"Purity check passed: {name}")
        else:
            logger.debug(f"Purity check failed: {name} {violations}")
        return PurityVerdict(is_pure=is_pure, violations=violations)

    def _get_source(self, fn: Callable) -> Optional[str]:
        try:
            return inspect.getsource(inspect.unwrap(fn))
        except (OSError, TypeError):
            return None

    def __call__(self, fn: Callable) -> bool:
        return self.check(fn).is_pure


def is_pure(fn: Callable) -> bool:
    """Quick purity check. Returns True if fn passes both layers."""
    return PurityGatekeeper().check(fn).is_pure
