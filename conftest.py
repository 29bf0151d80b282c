from pathlib import Path

import pytest

from persona_chat.catalog import CHARACTERS
from persona_chat.models import Character, Message, Turn
from persona_chat.store import MessageStore


class StubLLM:
    """Scripted StreamingLLM.

    Yields `fragments` in order. If `error` is set it is raised after
    `fail_after` fragments (default: after all of them). Every call is
    recorded as (system_instruction, history, message).
    """

    def __init__(
        self,
        fragments: list[str] | None = None,
        error: Exception | None = None,
        fail_after: int | None = None,
    ) -> None:
        self.fragments = list(fragments or [])
        self.error = error
        self.fail_after = fail_after
        self.calls: list[tuple[str, list[Turn], str]] = []

    async def stream(self, system_instruction: str, history: list[Turn], message: str):
        self.calls.append((system_instruction, list(history), message))
        for i, fragment in enumerate(self.fragments):
            if self.error is not None and self.fail_after == i:
                raise self.error
            yield fragment
        if self.error is not None:
            raise self.error


class Recorder:
    """Collects (character_id, messages) publications."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[Message]]] = []

    def __call__(self, character_id: str, messages: list[Message]) -> None:
        self.calls.append((character_id, list(messages)))

    def last(self) -> list[Message]:
        return self.calls[-1][1]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer LLM settings out of the tests."""
    for var in ("LLM_PROVIDER_URL", "LLM_PROVIDER_FORMAT", "LLM_MODEL",
                "LLM_API_KEY", "FRAGMENT_TIMEOUT", "DATA_DIR"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def data_dir(tmp_path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def store(data_dir) -> MessageStore:
    return MessageStore(data_dir)


@pytest.fixture
def character() -> Character:
    return CHARACTERS[0]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def stub_llm():
    """Factory for scripted LLMs: stub_llm(["Hel", "lo"], error=..., fail_after=...)."""
    return StubLLM
