"""Budget fitting - how many recent messages fit a token budget."""

from __future__ import annotations

from typing import Sequence

from .tokenizer import TokenCounter, count_messages
from .types import Message


def take_last(messages: Sequence[Message], count: int) -> tuple[Message, ...]:
    """Return the ``count`` most recent messages in original order."""
    if count <= 0:
        return ()
    return tuple(messages[-count:])


def fit_message_count(
    messages: Sequence[Message],
    provider: str,
    budget: int,
    counter: TokenCounter = count_messages,
) -> int:
    """Find the largest number of trailing messages whose count fits budget.

    Binary search over suffix length; assumes the counter is monotonic in the
    number of messages. A negative budget yields 0.

    Args:
        messages: Messages, oldest first
        provider: Provider name passed through to the counter
        budget: Token budget
        counter: Token counting function

    Returns:
        Count in [0, len(messages)]
    """
    low, high = 0, len(messages)

    while low < high:
        mid = (low + high + 1) // 2
        if counter(take_last(messages, mid), provider) <= budget:
            low = mid
        else:
            high = mid - 1

    return low


__all__ = ["fit_message_count", "take_last"]
