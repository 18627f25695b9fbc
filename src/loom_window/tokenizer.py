"""Token estimation for chat messages.

Provider-aware heuristic counting, no tokenizer downloads:
- Split text on whitespace, count punctuation as separate parts
- Scale the part count by a per-provider tokens-per-word ratio
- Add a fixed overhead per message for role and formatting

Any callable with the TokenCounter signature can replace ``count_messages``
when calling the strategies.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Sequence

from .types import Message

TokenCounter = Callable[[Sequence[Message], str], int]

# Tokens per 100 words (integer so estimates are exact)
PROVIDER_RATIOS: dict[str, int] = {
    "openai": 75,
    "anthropic": 80,
    "google": 60,
    "groq": 75,
    "together": 75,
    "openrouter": 75,
    "ollama": 75,
    "llamacpp": 75,
    "default": 75,
}

# Role, separators and formatting around each message
MESSAGE_OVERHEAD = 4

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"([.,!?;:])")


def _ratio(provider: str) -> int:
    return PROVIDER_RATIOS.get(str(provider).lower(), PROVIDER_RATIOS["default"])


def count_tokens(text: str, provider: str = "default") -> int:
    """Estimate tokens in a text string.

    Args:
        text: Text to estimate
        provider: Provider name (e.g. "openai", "anthropic", "google")

    Returns:
        Estimated token count, rounded up
    """
    if not text:
        return 0

    parts = 0
    for word in _WHITESPACE.split(text):
        parts += sum(1 for piece in _PUNCTUATION.split(word) if piece)

    # ceil(parts * ratio / 100)
    return -(-parts * _ratio(provider) // 100)


def count_message(message: Message, provider: str = "default") -> int:
    """Estimate tokens for one message including structural overhead."""
    content: Any = message.content
    if isinstance(content, str):
        return count_tokens(content, provider) + MESSAGE_OVERHEAD
    if isinstance(content, (list, tuple)):
        # Multimodal: only text parts are counted, by length
        text_length = sum(len(part) for part in content if isinstance(part, str))
        return text_length + MESSAGE_OVERHEAD * 2
    return MESSAGE_OVERHEAD


def count_messages(messages: Sequence[Message], provider: str = "default") -> int:
    """Estimate tokens for a list of messages."""
    return sum(count_message(m, provider) for m in messages)


__all__ = [
    "TokenCounter",
    "PROVIDER_RATIOS",
    "MESSAGE_OVERHEAD",
    "count_tokens",
    "count_message",
    "count_messages",
]
