"""Strategy identifiers and per-strategy options.

This module defines:
- Strategy: Closed set of truncation strategies
- KeepRecentOptions / KeepBookendsOptions / SlidingWindowOptions /
  SmartTruncateOptions: Settings accepted by each strategy
- options_for: Build the options object for a strategy from keyword values
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union


class Strategy(Enum):
    """Truncation strategy.

    - KEEP_RECENT: Most recent messages, any role
    - KEEP_BOOKENDS: All system messages plus most recent others
    - SLIDING_WINDOW: Trailing window guarded by an overlap check
    - SMART_TRUNCATE: System messages, first user turn, and a recent tail
    """

    KEEP_RECENT = "keep_recent"
    KEEP_BOOKENDS = "keep_bookends"
    SLIDING_WINDOW = "sliding_window"
    SMART_TRUNCATE = "smart_truncate"

    @classmethod
    def parse(cls, value: Any) -> Optional[Strategy]:
        """Resolve a strategy member or name; None when unrecognized."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return None
        return None


def _check_unsigned(name: str, value: Optional[int]) -> None:
    if value is not None and value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")


@dataclass(frozen=True)
class KeepRecentOptions:
    """Options for keep_recent.

    Attributes:
        count: Messages to keep (default: as many as fit the budget)
    """

    count: Optional[int] = None

    def __post_init__(self) -> None:
        _check_unsigned("count", self.count)


@dataclass(frozen=True)
class KeepBookendsOptions:
    """Options for keep_bookends.

    Attributes:
        count: Non-system messages to keep (default: as many as fit)
    """

    count: Optional[int] = None

    def __post_init__(self) -> None:
        _check_unsigned("count", self.count)


@dataclass(frozen=True)
class SlidingWindowOptions:
    """Options for sliding_window.

    Attributes:
        count: Window size in messages (default: as many as fit)
        overlap: Messages shared with the previous window; must stay below count
    """

    count: Optional[int] = None
    overlap: int = 2

    def __post_init__(self) -> None:
        _check_unsigned("count", self.count)
        _check_unsigned("overlap", self.overlap)


@dataclass(frozen=True)
class SmartTruncateOptions:
    """Options for smart_truncate.

    Attributes:
        count: Accepted for symmetry with other strategies; the recent tail is
            always sized to the budget
        preserve_first: Keep the first user message and anything before it
    """

    count: Optional[int] = None
    preserve_first: bool = True

    def __post_init__(self) -> None:
        _check_unsigned("count", self.count)


StrategyOptions = Union[
    KeepRecentOptions,
    KeepBookendsOptions,
    SlidingWindowOptions,
    SmartTruncateOptions,
]

OPTION_TYPES: dict[Strategy, type] = {
    Strategy.KEEP_RECENT: KeepRecentOptions,
    Strategy.KEEP_BOOKENDS: KeepBookendsOptions,
    Strategy.SLIDING_WINDOW: SlidingWindowOptions,
    Strategy.SMART_TRUNCATE: SmartTruncateOptions,
}


def options_for(
    strategy: Strategy,
    options: Union[StrategyOptions, Mapping[str, Any], None] = None,
) -> StrategyOptions:
    """Normalize options for a strategy.

    Args:
        strategy: Target strategy
        options: None, an options instance, or keyword values

    Returns:
        Options instance of the strategy's type

    Raises:
        TypeError: On unknown keys or an options instance of another strategy
    """
    option_type = OPTION_TYPES[strategy]

    if options is None:
        return option_type()
    if isinstance(options, option_type):
        return options
    if isinstance(options, Mapping):
        return option_type(**options)

    raise TypeError(
        f"{strategy.value} expects {option_type.__name__}, got {type(options).__name__}"
    )


__all__ = [
    "Strategy",
    "KeepRecentOptions",
    "KeepBookendsOptions",
    "SlidingWindowOptions",
    "SmartTruncateOptions",
    "StrategyOptions",
    "OPTION_TYPES",
    "options_for",
]
