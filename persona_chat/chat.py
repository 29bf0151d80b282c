"""Application core wired for a presentation layer.

PersonaChat ties the catalog, the message store, the session registry and
the turn coordinator together and exposes the two events a UI needs:

    on_character_selected(character)
    on_messages_published(character_id, messages)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Sequence

from persona_chat.catalog import CHARACTERS
from persona_chat.coordinator import TurnCoordinator
from persona_chat.language import AUTO
from persona_chat.llm import StreamingLLM
from persona_chat.models import Character, Message
from persona_chat.sessions import SessionRegistry
from persona_chat.store import MessageStore

logger = logging.getLogger(__name__)


class UnknownCharacterError(KeyError):
    """Raised when a character id is not in the catalog."""


class TurnInProgressError(RuntimeError):
    """Raised when a conversation is changed while a reply is streaming."""


class PersonaChat:
    def __init__(
        self,
        *,
        store: MessageStore,
        llm: StreamingLLM,
        characters: Sequence[Character] = CHARACTERS,
        fragment_timeout: float | None = None,
        on_character_selected: Callable[[Character], None] | None = None,
        on_messages_published: Callable[[str, list[Message]], None] | None = None,
    ) -> None:
        self.store = store
        self.registry = SessionRegistry(llm)
        self.coordinator = TurnCoordinator(
            self.registry, self._publish, fragment_timeout=fragment_timeout
        )
        self._characters = {c.id: c for c in characters}
        self._on_character_selected = on_character_selected
        self._on_messages_published = on_messages_published
        self._selected: Character | None = None

    # ------------------------------------------------------------------
    # Catalog & selection
    # ------------------------------------------------------------------

    @property
    def characters(self) -> list[Character]:
        return list(self._characters.values())

    def character(self, character_id: str) -> Character:
        try:
            return self._characters[character_id]
        except KeyError:
            raise UnknownCharacterError(character_id) from None

    @property
    def selected(self) -> Character | None:
        return self._selected

    def select(self, character_id: str) -> Character:
        character = self.character(character_id)
        self._selected = character
        if self._on_character_selected is not None:
            self._on_character_selected(character)
        return character

    def deselect(self) -> None:
        self._selected = None

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def history(self, character_id: str) -> list[Message]:
        return self.store.messages(self.character(character_id).id)

    def send(
        self, character_id: str, text: str, language: str | None = AUTO
    ) -> AsyncIterator[str]:
        """Start a turn against the stored history. See TurnCoordinator.send."""
        character = self.character(character_id)
        return self.coordinator.send(
            character, text, self.store.messages(character.id), language
        )

    def begin(
        self, character_id: str, text: str, language: str | None = AUTO
    ) -> AsyncIterator[str] | None:
        """Claim the turn slot at once. See TurnCoordinator.begin."""
        character = self.character(character_id)
        return self.coordinator.begin(
            character, text, self.store.messages(character.id), language
        )

    def clear(self, character_id: str) -> None:
        """Forget a conversation, both the stored log and the remote context.

        Raises TurnInProgressError while a reply for the character is
        still streaming.
        """
        character = self.character(character_id)
        if self.coordinator.in_flight(character.id):
            raise TurnInProgressError(character.id)
        self.store.clear(character.id)
        self.registry.reset(character.id)
        if self._on_messages_published is not None:
            self._on_messages_published(character.id, [])
        logger.info("cleared conversation with %s", character.id)

    def _publish(self, character_id: str, messages: list[Message]) -> None:
        self.store.replace(character_id, messages)
        if self._on_messages_published is not None:
            self._on_messages_published(character_id, messages)
