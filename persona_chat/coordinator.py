"""Turn coordinator: runs one user-message-to-reply exchange for a character.

Turn flow:
  1. Ignore the request if the text is blank or the character already has
     a turn in flight.
  2. Publish history + [user message] (the user sees their message at once).
  3. Publish history + [user message, empty streaming placeholder].
  4. Get or seed the character's remote session from the pre-turn history.
  5. Apply the language override and open the stream.
  6. Per fragment: accumulate and publish the placeholder with the text so far.
  7. On completion: publish the reply with is_streaming=False.
  8. On failure: append ERROR_ANNOTATION to the text so far and publish it
     with is_streaming=False. The error is logged, never raised.
  9. Clear the in-flight flag.

Every publication carries the complete log for the character, never a delta.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import aclosing

from persona_chat.language import AUTO, apply_language_override
from persona_chat.llm import LLMError
from persona_chat.models import Character, Message, now_ms
from persona_chat.sessions import SessionRegistry

logger = logging.getLogger(__name__)

ERROR_ANNOTATION = " [Connection Error: Unable to reach the character. Please try again.]"

Publish = Callable[[str, list[Message]], None]


def _new_id() -> str:
    return uuid.uuid4().hex


class TurnCoordinator:
    """Drives streaming turns and publishes message-log snapshots.

    Args:
        registry:         Session registry that owns the remote handles.
        publish:          Called with (character_id, full message list) on
                          every change.
        fragment_timeout: Seconds to wait for each fragment before the turn
                          fails. None waits indefinitely.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        publish: Publish,
        fragment_timeout: float | None = None,
    ) -> None:
        self._registry = registry
        self._publish = publish
        self._fragment_timeout = fragment_timeout
        self._in_flight: set[str] = set()

    def in_flight(self, character_id: str) -> bool:
        return character_id in self._in_flight

    def begin(
        self,
        character: Character,
        user_text: str,
        history_before_turn: Sequence[Message],
        language: str | None = AUTO,
    ) -> AsyncIterator[str] | None:
        """Claim the character's turn slot now and return the turn's stream.

        Returns None, changing nothing, if the text is blank or a turn for
        the character is already in flight. The caller must start iterating
        the returned stream; the slot is released when it finishes.
        """
        text = user_text.strip()
        if not text or character.id in self._in_flight:
            logger.debug("turn for %s rejected (blank or in flight)", character.id)
            return None
        self._in_flight.add(character.id)
        return self._turn(character, text, list(history_before_turn), language)

    async def send(
        self,
        character: Character,
        user_text: str,
        history_before_turn: Sequence[Message],
        language: str | None = AUTO,
    ) -> AsyncIterator[str]:
        """Run one turn, yielding the accumulated reply text as it grows.

        Nothing happens until the iterator is first advanced. A rejected
        request yields nothing and changes no state.
        """
        turn = self.begin(character, user_text, history_before_turn, language)
        if turn is None:
            return
        async with aclosing(turn) as partials:
            async for text in partials:
                yield text

    async def _turn(
        self,
        character: Character,
        text: str,
        history: list[Message],
        language: str | None,
    ) -> AsyncIterator[str]:
        try:
            user_msg = Message(id=_new_id(), role="user", text=text, timestamp=now_ms())
            self._publish(character.id, [*history, user_msg])

            placeholder = Message(
                id=_new_id(), role="model", text="", timestamp=now_ms(), is_streaming=True
            )
            self._publish(character.id, [*history, user_msg, placeholder])

            def _reply(body: str, streaming: bool) -> list[Message]:
                msg = placeholder.model_copy(update={"text": body, "is_streaming": streaming})
                return [*history, user_msg, msg]

            accumulated = ""
            finalized = False
            try:
                session = self._registry.get_or_create(character, history)
                outgoing = apply_language_override(text, language)
                async with aclosing(session.send_stream(outgoing)) as fragments:
                    while True:
                        try:
                            fragment = await self._next_fragment(fragments)
                        except StopAsyncIteration:
                            break
                        accumulated += fragment
                        self._publish(character.id, _reply(accumulated, True))
                        yield accumulated
            except Exception:
                logger.exception("turn for %s failed after %d chars", character.id, len(accumulated))
                accumulated += ERROR_ANNOTATION
                finalized = True
                self._publish(character.id, _reply(accumulated, False))
                yield accumulated
            else:
                finalized = True
                self._publish(character.id, _reply(accumulated, False))
            finally:
                # Consumer stopped iterating mid-stream; keep what arrived.
                if not finalized:
                    self._publish(character.id, _reply(accumulated, False))
        finally:
            self._in_flight.discard(character.id)

    async def _next_fragment(self, fragments: AsyncIterator[str]) -> str:
        if self._fragment_timeout is None:
            return await anext(fragments)
        try:
            return await asyncio.wait_for(anext(fragments), self._fragment_timeout)
        except asyncio.TimeoutError as e:
            raise LLMError(f"No reply within {self._fragment_timeout}s") from e

    async def run(
        self,
        character: Character,
        user_text: str,
        history_before_turn: Sequence[Message],
        language: str | None = AUTO,
    ) -> str | None:
        """Run a turn to completion.

        Returns the final reply text, or None if the request was rejected or
        the reply was empty.
        """
        final: str | None = None
        async for partial in self.send(character, user_text, history_before_turn, language):
            final = partial
        return final
