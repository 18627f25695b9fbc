"""JSON conversation loading with pydantic validation.

Accepted documents:
- A list of messages: [{"role": "user", "content": "..."}]
- An object with a messages list: {"messages": [...]}
"""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .types import Message, Role


class MessageModel(BaseModel):
    """Wire format of a single message."""

    model_config = ConfigDict(extra="ignore")

    role: Role
    content: Any = None
    name: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: Any) -> Role:
        return Role.parse(value)

    def to_message(self) -> Message:
        return Message(role=self.role, content=self.content, name=self.name)


class ConversationModel(BaseModel):
    """Wire format of a conversation."""

    messages: list[MessageModel]

    def to_messages(self) -> tuple[Message, ...]:
        return tuple(m.to_message() for m in self.messages)


def load_conversation(text: str) -> tuple[Message, ...]:
    """Parse and validate a JSON conversation.

    Raises:
        pydantic.ValidationError: If the document is not a valid conversation
        json.JSONDecodeError: If the text is not JSON
    """
    data = json.loads(text)
    if isinstance(data, list):
        data = {"messages": data}
    return ConversationModel.model_validate(data).to_messages()


def dump_conversation(messages: tuple[Message, ...]) -> str:
    """Serialize messages as a {"messages": [...]} JSON document."""
    return json.dumps({"messages": [m.to_dict() for m in messages]}, ensure_ascii=False)


__all__ = [
    "MessageModel",
    "ConversationModel",
    "load_conversation",
    "dump_conversation",
]
