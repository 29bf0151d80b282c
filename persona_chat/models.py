"""Core domain models.

Pydantic is used for validation and serialisation at every data boundary.
Fields are snake_case in Python and camelCase on disk and over HTTP, so the
stored history stays readable by the browser client.
"""

from __future__ import annotations

import time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["user", "model"]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Character(_CamelModel):
    """A static persona. Loaded once from the catalog and never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    role: str
    description: str
    avatar: str
    system_instruction: str
    theme_color: str


class Message(_CamelModel):
    """One utterance in a character's conversation log."""

    id: str
    role: Role
    text: str
    timestamp: int = Field(default_factory=now_ms)
    is_streaming: bool | None = None  # only set on the in-flight reply


class ChatSession(_CamelModel):
    """The persisted log for one character."""

    character_id: str
    messages: list[Message] = Field(default_factory=list)
    last_updated: int = Field(default_factory=now_ms)


ChatHistory = dict[str, ChatSession]


class Turn(BaseModel):
    """One role/text pair of a transcript sent to the remote service."""

    role: Role
    text: str
