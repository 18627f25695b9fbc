"""Truncation errors.

Strategies return these inside a TruncationResult instead of raising them;
callers that prefer exceptions use ``TruncationResult.unwrap()`` or
``ContextWindow.ensure_fit_or_raise()``.
"""

from __future__ import annotations

from typing import Any


class TruncationError(Exception):
    """Base class for truncation failures.

    Attributes:
        kind: Stable machine-readable error kind
    """

    kind = "truncation_error"


class InvalidOverlapError(TruncationError):
    """Sliding window overlap is not smaller than the window size."""

    kind = "invalid_overlap"

    def __init__(self, count: int, overlap: int):
        self.count = count
        self.overlap = overlap
        super().__init__(f"Overlap must be smaller than window size: overlap={overlap} count={count}")


class UnknownStrategyError(TruncationError):
    """Strategy identifier matches none of the known strategies."""

    kind = "unknown_strategy"

    def __init__(self, strategy: Any):
        self.strategy = strategy
        super().__init__(f"Unknown truncation strategy: {strategy!r}")


class ContextExceededError(TruncationError):
    """Messages still exceed the context window after truncation."""

    kind = "context_exceeded"

    def __init__(self, tokens: int, limit: int):
        self.tokens = tokens
        self.limit = limit
        super().__init__(f"Prompt exceeds context window: {tokens} tokens > {limit} limit")


__all__ = [
    "TruncationError",
    "InvalidOverlapError",
    "UnknownStrategyError",
    "ContextExceededError",
]
