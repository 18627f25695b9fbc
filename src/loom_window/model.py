"""Model metadata - What the context window needs to know about a model.

Limits are read from the first endpoint of the model; models without
endpoints fall back to conservative defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_LIMITS_TOTAL = 4096
DEFAULT_LIMITS_COMPLETION = 1000
DEFAULT_PROMPT_LIMIT = 3096

# Models at or above this window are considered extended-context
EXTENDED_CONTEXT_THRESHOLD = 100_000


@dataclass(frozen=True)
class Endpoint:
    """A serving endpoint for a model.

    Attributes:
        context_length: Total context window in tokens
        max_completion_tokens: Maximum tokens the endpoint will generate
    """

    context_length: Optional[int] = None
    max_completion_tokens: Optional[int] = None


@dataclass(frozen=True)
class ModelSpec:
    """A model as seen by the truncation engine.

    Attributes:
        provider: Provider name used for token estimation (e.g. "openai")
        model: Model name
        endpoints: Serving endpoints; the first one defines the limits
    """

    provider: str
    model: str
    endpoints: tuple[Endpoint, ...] = ()


@dataclass(frozen=True)
class Limits:
    """Context window limits for a model.

    Attributes:
        total: Total context window size in tokens
        completion: Maximum completion tokens
        prompt: Maximum prompt tokens
    """

    total: Optional[int]
    completion: Optional[int]
    prompt: Optional[int]


def _prompt_limit(endpoint: Endpoint) -> int:
    total = endpoint.context_length
    completion = endpoint.max_completion_tokens
    if isinstance(total, int) and isinstance(completion, int):
        return total - completion
    if isinstance(total, int):
        # Reserve 25% for completion
        return total * 3 // 4
    return DEFAULT_PROMPT_LIMIT


def get_limits(model: ModelSpec) -> Limits:
    """Get context window limits for a model."""
    if not model.endpoints:
        return Limits(
            total=DEFAULT_LIMITS_TOTAL,
            completion=DEFAULT_LIMITS_COMPLETION,
            prompt=DEFAULT_PROMPT_LIMIT,
        )

    endpoint = model.endpoints[0]
    return Limits(
        total=endpoint.context_length,
        completion=endpoint.max_completion_tokens,
        prompt=_prompt_limit(endpoint),
    )


__all__ = [
    "Endpoint",
    "ModelSpec",
    "Limits",
    "get_limits",
    "EXTENDED_CONTEXT_THRESHOLD",
]
