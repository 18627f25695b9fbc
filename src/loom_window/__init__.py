"""loom-window - Fit chat conversations into a model's context window.

Truncation strategies keep the messages that matter most while staying under
a token budget:

- **keep_recent**: The N most recent messages
- **keep_bookends**: System messages plus the N most recent others
- **sliding_window**: A trailing window guarded by an overlap check
- **smart_truncate**: System messages, the first user turn, and a recent tail

Quick Start:
    ```python
    from loom_window import Message, apply

    messages = [
        Message.system("You are a helpful assistant"),
        Message.user("Summarize this report"),
        ...
    ]

    result = apply(messages, "openai", 2000, "keep_bookends")
    if result.ok:
        send(result.messages)
    ```

For model-aware fitting:
    ```python
    from loom_window import ContextWindow, Endpoint, ModelSpec

    window = ContextWindow(ModelSpec("openai", "gpt-4o", (Endpoint(128000, 4096),)))
    messages = window.ensure_fit_or_raise(messages, strategy="smart_truncate")
    ```

Module structure:
    - types.py: Role, Message, TruncationResult
    - tokenizer.py: Provider-aware token estimation
    - fitter.py: Binary-search budget fitting
    - options.py / strategies.py: Strategies and dispatcher
    - model.py / window.py: Model limits and ContextWindow
    - config.py: loom-window.toml configuration
    - tracing.py: OpenTelemetry tracing
    - cli.py: Command line interface
"""

__version__ = "0.1.0"

# Config
from .config import WindowConfig, load_window_config

# Errors
from .errors import (
    ContextExceededError,
    InvalidOverlapError,
    TruncationError,
    UnknownStrategyError,
)

# Fitting
from .fitter import fit_message_count

# Model
from .model import Endpoint, Limits, ModelSpec, get_limits

# Options
from .options import (
    KeepBookendsOptions,
    KeepRecentOptions,
    SlidingWindowOptions,
    SmartTruncateOptions,
    Strategy,
    options_for,
)

# Loading
from .schema import load_conversation

# Strategies
from .strategies import apply, keep_bookends, keep_recent, sliding_window, smart_truncate

# Tokenizer
from .tokenizer import TokenCounter, count_message, count_messages, count_tokens

# Telemetry
from .tracing import init_telemetry, shutdown_telemetry

# Types
from .types import Message, Role, TruncationResult

# Window
from .window import ContextWindow, FitInfo

__all__ = [
    # Types
    "Role",
    "Message",
    "TruncationResult",
    # Errors
    "TruncationError",
    "InvalidOverlapError",
    "UnknownStrategyError",
    "ContextExceededError",
    # Tokenizer
    "TokenCounter",
    "count_tokens",
    "count_message",
    "count_messages",
    # Fitting
    "fit_message_count",
    # Strategies
    "Strategy",
    "KeepRecentOptions",
    "KeepBookendsOptions",
    "SlidingWindowOptions",
    "SmartTruncateOptions",
    "options_for",
    "apply",
    "keep_recent",
    "keep_bookends",
    "sliding_window",
    "smart_truncate",
    # Model & Window
    "Endpoint",
    "ModelSpec",
    "Limits",
    "get_limits",
    "ContextWindow",
    "FitInfo",
    # Config
    "WindowConfig",
    "load_window_config",
    # Loading
    "load_conversation",
    # Telemetry
    "init_telemetry",
    "shutdown_telemetry",
]
