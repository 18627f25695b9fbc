"""Message types - Data structures the truncation engine operates on.

This module defines:
- Role: Closed set of chat roles
- Message: An immutable role-tagged chat message
- TruncationResult: Outcome of a truncation (messages or an error value)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Sequence, Union

if TYPE_CHECKING:
    from .errors import TruncationError


class Role(Enum):
    """Chat message role.

    - SYSTEM: Instructions for the model
    - USER: Human turn
    - ASSISTANT: Model turn
    - TOOL: Tool output fed back to the model
    """

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    @classmethod
    def parse(cls, value: Union[Role, str]) -> Role:
        """Coerce a role name (case-insensitive) into a Role.

        Raises:
            ValueError: If the value names no known role
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValueError(f"Unknown role: {value!r}. Choose from: {[r.value for r in cls]}")


@dataclass(frozen=True)
class Message:
    """A chat message.

    Attributes:
        role: Message role
        content: Message content (opaque to the truncation engine)
        name: Optional name for the message sender
    """

    role: Role
    content: Any
    name: Optional[str] = None

    @classmethod
    def system(cls, content: Any) -> Message:
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: Any) -> Message:
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: Any) -> Message:
        return cls(Role.ASSISTANT, content)

    @classmethod
    def tool(cls, content: Any, name: Optional[str] = None) -> Message:
        return cls(Role.TOOL, content, name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        """Build a Message from API format ({"role": ..., "content": ...})."""
        if data.get("role") is None:
            raise ValueError("Message requires a role")
        return cls(
            role=Role.parse(data["role"]),
            content=data.get("content"),
            name=data.get("name"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to API format."""
        d: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name:
            d["name"] = self.name
        return d


@dataclass(frozen=True)
class TruncationResult:
    """Result of applying a truncation strategy.

    Exactly one of the two outcomes is meaningful: when ``error`` is set the
    strategy refused to run and ``messages`` is empty.

    Attributes:
        messages: Retained messages, oldest first
        error: Error value when the strategy failed
    """

    messages: tuple[Message, ...] = ()
    error: Optional[TruncationError] = None

    @classmethod
    def success(cls, messages: Sequence[Message]) -> TruncationResult:
        return cls(messages=tuple(messages))

    @classmethod
    def failure(cls, error: TruncationError) -> TruncationResult:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> tuple[Message, ...]:
        """Return the retained messages, raising the carried error if any."""
        if self.error is not None:
            raise self.error
        return self.messages


__all__ = [
    "Role",
    "Message",
    "TruncationResult",
]
