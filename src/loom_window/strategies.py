"""Truncation strategies for fitting a conversation into a token budget.

Available strategies:
- keep_recent: Keep the N most recent messages
- keep_bookends: Keep all system messages plus the N most recent others
- sliding_window: Keep a trailing window; overlap must be smaller than it
- smart_truncate: Keep system messages, the first user turn, and what fits after

Every strategy returns a TruncationResult holding a fresh tuple of messages
in their original relative order. Inputs are never mutated.

Example:
    result = apply(messages, "openai", 2000, "keep_bookends", {"count": 10})
    if result.ok:
        send(result.messages)
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from opentelemetry import trace

from .errors import InvalidOverlapError, UnknownStrategyError
from .fitter import fit_message_count, take_last
from .options import Strategy, StrategyOptions, options_for
from .tokenizer import TokenCounter, count_messages
from .types import Message, Role, TruncationResult

# Get tracer for truncation spans
tracer = trace.get_tracer(__name__)

OptionsArg = Union[StrategyOptions, Mapping[str, Any], None]


def _split_system(messages: Sequence[Message]) -> tuple[list[Message], list[Message]]:
    system: list[Message] = []
    other: list[Message] = []
    for msg in messages:
        if msg.role is Role.SYSTEM:
            system.append(msg)
        else:
            other.append(msg)
    return system, other


def keep_recent(
    messages: Sequence[Message],
    provider: str,
    budget: int,
    options: OptionsArg = None,
    counter: TokenCounter = count_messages,
) -> TruncationResult:
    """Keep only the most recent messages, regardless of role."""
    opts = options_for(Strategy.KEEP_RECENT, options)

    if opts.count is None:
        count = fit_message_count(messages, provider, budget, counter)
    else:
        count = opts.count

    return TruncationResult.success(take_last(messages, count))


def keep_bookends(
    messages: Sequence[Message],
    provider: str,
    budget: int,
    options: OptionsArg = None,
    counter: TokenCounter = count_messages,
) -> TruncationResult:
    """Keep every system message plus the most recent non-system messages.

    System messages come first in the result. The recent tail is sized to the
    budget left after the system messages, which may be negative (tail of 0).
    """
    opts = options_for(Strategy.KEEP_BOOKENDS, options)

    system, other = _split_system(messages)
    available = budget - counter(system, provider)

    if opts.count is None:
        count = fit_message_count(other, provider, available, counter)
    else:
        count = min(opts.count, len(other))

    return TruncationResult.success(system + list(take_last(other, count)))


def sliding_window(
    messages: Sequence[Message],
    provider: str,
    budget: int,
    options: OptionsArg = None,
    counter: TokenCounter = count_messages,
) -> TruncationResult:
    """Keep a single trailing window of messages.

    ``overlap`` is only checked against the window size; the window is always
    the last ``count`` messages.
    """
    opts = options_for(Strategy.SLIDING_WINDOW, options)

    if opts.count is None:
        count = fit_message_count(messages, provider, budget, counter)
    else:
        count = opts.count

    total = len(messages)

    if total <= count:
        return TruncationResult.success(messages)

    if opts.overlap < count:
        start = max(0, total - count)
        return TruncationResult.success(messages[start:])

    return TruncationResult.failure(InvalidOverlapError(count=count, overlap=opts.overlap))


def smart_truncate(
    messages: Sequence[Message],
    provider: str,
    budget: int,
    options: OptionsArg = None,
    counter: TokenCounter = count_messages,
) -> TruncationResult:
    """Keep system messages, the opening of the conversation, and a recent tail.

    With ``preserve_first`` the opening is everything up to and including the
    first user message (all non-system messages when there is no user
    message). The tail is sized to the budget left after the preserved part.
    """
    opts = options_for(Strategy.SMART_TRUNCATE, options)

    system, non_system = _split_system(messages)

    first_segment: list[Message] = []
    remaining: list[Message] = non_system

    if opts.preserve_first:
        first_user = next(
            (i for i, msg in enumerate(non_system) if msg.role is Role.USER),
            None,
        )
        if first_user is None:
            first_segment, remaining = non_system, []
        else:
            first_segment = non_system[: first_user + 1]
            remaining = non_system[first_user + 1 :]

    available = budget - counter(system + first_segment, provider)
    count = fit_message_count(remaining, provider, available, counter)

    return TruncationResult.success(system + first_segment + list(take_last(remaining, count)))


_STRATEGIES = {
    Strategy.KEEP_RECENT: keep_recent,
    Strategy.KEEP_BOOKENDS: keep_bookends,
    Strategy.SLIDING_WINDOW: sliding_window,
    Strategy.SMART_TRUNCATE: smart_truncate,
}


def apply(
    messages: Sequence[Message],
    provider: str,
    budget: int,
    strategy: Union[Strategy, str],
    options: OptionsArg = None,
    counter: TokenCounter = count_messages,
) -> TruncationResult:
    """Apply a truncation strategy by identifier.

    Args:
        messages: Conversation, oldest first
        provider: Provider name passed to the token counter
        budget: Token budget
        strategy: Strategy member or name (e.g. "keep_recent")
        options: Strategy options instance or keyword values
        counter: Token counting function

    Returns:
        TruncationResult; unknown strategies yield an UnknownStrategyError value
    """
    resolved: Optional[Strategy] = Strategy.parse(strategy)
    if resolved is None:
        logging.debug("[loom-window] Unknown strategy %r", strategy)
        return TruncationResult.failure(UnknownStrategyError(strategy))

    with tracer.start_as_current_span(
        "window.truncate",
        attributes={
            "strategy": resolved.value,
            "provider": str(provider),
            "budget": budget,
            "messages.in": len(messages),
        },
    ) as span:
        try:
            result = _STRATEGIES[resolved](messages, provider, budget, options, counter)
        except Exception as e:
            span.record_exception(e)
            span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
            raise

        if result.ok:
            span.set_attribute("messages.out", len(result.messages))
        else:
            span.set_attribute("error.kind", result.error.kind)  # type: ignore[union-attr]

    logging.debug(
        "[loom-window] %s kept %d/%d messages (budget=%d)",
        resolved.value,
        len(result.messages),
        len(messages),
        budget,
    )
    return result


__all__ = [
    "apply",
    "keep_recent",
    "keep_bookends",
    "sliding_window",
    "smart_truncate",
]
