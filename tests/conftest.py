"""Test fixtures and configuration for loom-window tests.

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures
    └── unit/                # Unit tests (no external services)
        ├── test_cli.py
        ├── test_config.py
        ├── test_fitter.py
        ├── test_options.py
        ├── test_schema.py
        ├── test_strategies.py
        ├── test_tokenizer.py
        ├── test_tracing.py
        ├── test_types.py
        └── test_window.py

Running tests:
    pytest tests/unit -v
"""

import sys
from pathlib import Path
from typing import Sequence

import pytest

# Add tests directory to path so test modules can import shared helpers
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from loom_window import Message  # noqa: E402


def unit_counter(messages: Sequence[Message], provider: str) -> int:
    """Token counter charging exactly one token per message."""
    return len(messages)


@pytest.fixture
def counter():
    """One token per message."""
    return unit_counter


@pytest.fixture
def conversation() -> tuple[Message, ...]:
    """One system message followed by twenty user turns U1..U20."""
    return (Message.system("S"),) + tuple(Message.user(f"U{i}") for i in range(1, 21))


@pytest.fixture
def mixed_conversation() -> tuple[Message, ...]:
    """Conversation with interleaved roles and a late system message."""
    return (
        Message.system("rules"),
        Message.assistant("greeting"),
        Message.user("task"),
        Message.assistant("a1"),
        Message.tool("result", name="search"),
        Message.system("late rules"),
        Message.user("u2"),
        Message.assistant("a2"),
    )


def contents(messages: Sequence[Message]) -> list:
    """Contents of messages, for compact assertions."""
    return [m.content for m in messages]
