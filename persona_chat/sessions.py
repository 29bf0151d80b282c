"""Remote session handles and the per-character registry that owns them.

A RemoteSession binds one character's system instruction to the transcript
the remote model has seen so far. Handles live only in memory. After a
restart the registry is empty, and the first turn for a character reseeds
its handle from the persisted log.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable

from persona_chat.llm import StreamingLLM
from persona_chat.models import Character, Message, Turn

logger = logging.getLogger(__name__)


def seed_transcript(messages: Iterable[Message]) -> list[Turn]:
    """Map a message log to a transcript, in order.

    In-flight replies are incomplete and empty messages carry nothing for
    the model, so both are left out.
    """
    return [
        Turn(role=m.role, text=m.text)
        for m in messages
        if not m.is_streaming and m.text
    ]


class RemoteSession:
    """Stateful conversation context for one character."""

    def __init__(
        self, llm: StreamingLLM, system_instruction: str, history: list[Turn]
    ) -> None:
        self._llm = llm
        self._system_instruction = system_instruction
        self._history = list(history)

    @property
    def system_instruction(self) -> str:
        return self._system_instruction

    @property
    def history(self) -> list[Turn]:
        return list(self._history)

    async def send_stream(self, message: str) -> AsyncIterator[str]:
        """Send `message` and yield reply fragments.

        The exchange is added to the transcript only once the reply completes.
        """
        reply: list[str] = []
        async for fragment in self._llm.stream(
            self._system_instruction, list(self._history), message
        ):
            reply.append(fragment)
            yield fragment
        self._history.append(Turn(role="user", text=message))
        self._history.append(Turn(role="model", text="".join(reply)))


class SessionRegistry:
    """Maps character id to its RemoteSession for the process lifetime."""

    def __init__(self, llm: StreamingLLM) -> None:
        self._llm = llm
        self._sessions: dict[str, RemoteSession] = {}

    def get_or_create(
        self, character: Character, seed_history: Iterable[Message]
    ) -> RemoteSession:
        """Return the character's handle, creating it on first use.

        `seed_history` is read only when the handle is created. An existing
        handle is returned unchanged even if the caller's history has moved
        on. Creation is local and does no I/O.
        """
        session = self._sessions.get(character.id)
        if session is None:
            transcript = seed_transcript(seed_history)
            session = RemoteSession(self._llm, character.system_instruction, transcript)
            self._sessions[character.id] = session
            logger.debug("seeded session for %s with %d turn(s)", character.id, len(transcript))
        return session

    def reset(self, character_id: str) -> None:
        """Discard a character's handle so the next turn reseeds it."""
        if self._sessions.pop(character_id, None) is not None:
            logger.debug("reset session for %s", character_id)

    def __contains__(self, character_id: object) -> bool:
        return character_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
