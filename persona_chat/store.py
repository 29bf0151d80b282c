"""JSON file store for conversation logs.

All conversations live in one document, ``{base}/history.json``, keyed by
character id:

    {
      "<character_id>": {
        "characterId": "<character_id>",
        "messages": [{"id", "role", "text", "timestamp", "isStreaming"?}, ...],
        "lastUpdated": <epoch ms>
      }
    }

Every mutation replaces a character's whole log and rewrites the whole
document. Loading never writes and replace() always leaves at least one
entry, so an empty store is never written over history saved by an earlier
run. clear() is the one explicit exception.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from persona_chat.models import ChatHistory, ChatSession, Message, now_ms

logger = logging.getLogger(__name__)

_history_adapter = TypeAdapter(ChatHistory)


class MessageStore:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)
        self._path = base_path / "history.json"
        self._sessions: ChatHistory = {}

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> ChatHistory:
        """Read the stored history into memory and return a snapshot.

        A missing file yields an empty store. A corrupt file is logged and
        also yields an empty store; it is left on disk untouched until the
        next write.
        """
        self._sessions = {}
        if not self._path.is_file():
            return {}
        try:
            sessions = _history_adapter.validate_json(self._path.read_text())
        except (ValidationError, ValueError, OSError) as e:
            logger.error("Failed to parse chat history at %s: %s", self._path, e)
            return {}

        for session in sessions.values():
            for msg in session.messages:
                # A reply left mid-stream by a previous process is final now.
                if msg.is_streaming:
                    msg.is_streaming = False
        self._sessions = sessions
        logger.debug("loaded %d conversation(s) from %s", len(sessions), self._path)
        return self.sessions()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def sessions(self) -> ChatHistory:
        return {cid: s.model_copy(deep=True) for cid, s in self._sessions.items()}

    def messages(self, character_id: str) -> list[Message]:
        session = self._sessions.get(character_id)
        if session is None:
            return []
        return [m.model_copy() for m in session.messages]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def replace(self, character_id: str, messages: Sequence[Message]) -> None:
        """Overwrite a character's log and persist the whole store."""
        self._sessions[character_id] = ChatSession(
            character_id=character_id,
            messages=[m.model_copy() for m in messages],
            last_updated=now_ms(),
        )
        self._save()

    def clear(self, character_id: str) -> None:
        """Drop a character's conversation. Persisted even if nothing is left."""
        if self._sessions.pop(character_id, None) is not None:
            self._save()

    def _save(self) -> None:
        data = {
            cid: s.model_dump(by_alias=True, exclude_none=True)
            for cid, s in self._sessions.items()
        }
        self._path.write_text(json.dumps(data, indent=2))
