"""Context Window - Fit conversations into a model's context window.

This module handles context budget management for a model:
- Resolve context limits from model metadata
- Count tokens and check fit
- Truncate with a strategy until the conversation fits
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

from opentelemetry import trace

from .config import WindowConfig
from .errors import ContextExceededError
from .model import (
    DEFAULT_LIMITS_TOTAL,
    EXTENDED_CONTEXT_THRESHOLD,
    Limits,
    ModelSpec,
    get_limits,
)
from .options import Strategy, StrategyOptions
from .strategies import apply
from .tokenizer import TokenCounter, count_messages
from .types import Message, TruncationResult

tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class FitInfo:
    """How a conversation fits the context window.

    Attributes:
        tokens: Estimated tokens in the conversation
        limit: Effective prompt token limit
        fits: Whether tokens <= limit
        available: Tokens left under the limit (never negative)
    """

    tokens: int
    limit: int
    fits: bool
    available: int


def _explicit_count(options: Union[StrategyOptions, Mapping[str, Any], None]) -> bool:
    if options is None:
        return False
    if isinstance(options, Mapping):
        return options.get("count") is not None
    return getattr(options, "count", None) is not None


class ContextWindow:
    """Manages the context window of one model.

    Example:
        window = ContextWindow(ModelSpec("openai", "gpt-4o", (Endpoint(128000, 4096),)))
        info = window.check_fit(messages)
        result = window.ensure_fit(messages, strategy="keep_bookends")
    """

    def __init__(
        self,
        model: ModelSpec,
        config: Optional[WindowConfig] = None,
        counter: TokenCounter = count_messages,
    ):
        """Initialize context window.

        Args:
            model: Model whose limits apply
            config: Defaults for strategy, options and completion reservation
            counter: Token counting function
        """
        self.model = model
        self.config = config or WindowConfig()
        self.counter = counter
        self._limits = get_limits(model)

    @property
    def limits(self) -> Limits:
        """Get the model's context limits."""
        return self._limits

    def count_tokens(self, messages: Sequence[Message]) -> int:
        """Count tokens in messages for this model's provider."""
        return self.counter(messages, self.model.provider)

    def check_fit(
        self,
        messages: Sequence[Message],
        reserve_completion: Optional[int] = None,
    ) -> FitInfo:
        """Check whether messages fit within the context window.

        Args:
            messages: Conversation to check
            reserve_completion: Tokens to keep free for the completion;
                defaults to the model's prompt limit when not given

        Returns:
            FitInfo with tokens, limit, fits and available
        """
        tokens = self.count_tokens(messages)

        if reserve_completion is None:
            limit = self._limits.prompt or self._limits.total or DEFAULT_LIMITS_TOTAL
        else:
            limit = (self._limits.total or DEFAULT_LIMITS_TOTAL) - reserve_completion

        return FitInfo(
            tokens=tokens,
            limit=limit,
            fits=tokens <= limit,
            available=max(0, limit - tokens),
        )

    def truncate(
        self,
        messages: Sequence[Message],
        limit: int,
        strategy: Union[Strategy, str],
        options: Union[StrategyOptions, Mapping[str, Any], None] = None,
    ) -> TruncationResult:
        """Truncate messages to a token limit using a strategy."""
        return apply(messages, self.model.provider, limit, strategy, options, self.counter)

    def ensure_fit(
        self,
        messages: Sequence[Message],
        strategy: Union[Strategy, str, None] = None,
        options: Union[StrategyOptions, Mapping[str, Any], None] = None,
        reserve_completion: Optional[int] = None,
    ) -> TruncationResult:
        """Ensure messages fit within the context window.

        Messages that already fit are returned unchanged unless an explicit
        ``count`` is requested, in which case the strategy always runs.

        Args:
            messages: Conversation to fit
            strategy: Truncation strategy (default: from config)
            options: Strategy options (default: from config)
            reserve_completion: Tokens to reserve for completion (default: from config)

        Returns:
            TruncationResult; ContextExceededError when truncation is not enough
        """
        if reserve_completion is None:
            reserve_completion = self.config.reserve_completion
        if strategy is None:
            strategy = self.config.strategy
        if options is None:
            resolved = Strategy.parse(strategy)
            if resolved is not None:
                options = self.config.options_for(resolved)

        with tracer.start_as_current_span(
            "window.ensure_fit",
            attributes={
                "model": self.model.model,
                "provider": self.model.provider,
                "messages.in": len(messages),
            },
        ) as span:
            info = self.check_fit(messages, reserve_completion)
            span.set_attribute("tokens.before", info.tokens)
            span.set_attribute("limit", info.limit)

            if info.fits and not _explicit_count(options):
                return TruncationResult.success(messages)

            result = self.truncate(messages, info.limit, strategy, options)
            if not result.ok:
                return result

            after = self.check_fit(result.messages, reserve_completion)
            span.set_attribute("tokens.after", after.tokens)

            if not after.fits:
                logging.debug(
                    "[loom-window] %s still exceeds window: %d > %d",
                    self.model.model,
                    after.tokens,
                    after.limit,
                )
                return TruncationResult.failure(
                    ContextExceededError(tokens=after.tokens, limit=after.limit)
                )

            return result

    def ensure_fit_or_raise(
        self,
        messages: Sequence[Message],
        strategy: Union[Strategy, str, None] = None,
        options: Union[StrategyOptions, Mapping[str, Any], None] = None,
        reserve_completion: Optional[int] = None,
    ) -> tuple[Message, ...]:
        """Like ensure_fit, but raise the TruncationError on failure."""
        return self.ensure_fit(messages, strategy, options, reserve_completion).unwrap()

    def is_extended_context(self) -> bool:
        """Whether the model has an extended (>= 100K token) context window."""
        total = self._limits.total
        return isinstance(total, int) and total >= EXTENDED_CONTEXT_THRESHOLD

    def utilization(self, messages: Sequence[Message]) -> float:
        """Percentage of the prompt limit used by messages (may exceed 100)."""
        tokens = self.count_tokens(messages)
        limit = self._limits.prompt or self._limits.total or DEFAULT_LIMITS_TOTAL
        return round(tokens / limit * 100.0, 2)


__all__ = [
    "ContextWindow",
    "FitInfo",
]
