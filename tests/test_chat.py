"""Tests for PersonaChat: the wiring a presentation layer talks to."""

import pytest

from persona_chat.catalog import CHARACTERS
from persona_chat.chat import PersonaChat, TurnInProgressError, UnknownCharacterError
from persona_chat.models import Turn
from persona_chat.store import MessageStore


def _app(store, llm, **kwargs) -> PersonaChat:
    return PersonaChat(store=store, llm=llm, **kwargs)


async def _drain(stream) -> list[str]:
    return [text async for text in stream]


# ── Catalog & selection ──────────────────────────────────


def test_characters_in_catalog_order(store, stub_llm):
    app = _app(store, stub_llm())
    assert [c.id for c in app.characters] == [c.id for c in CHARACTERS]


def test_unknown_character_raises(store, stub_llm):
    app = _app(store, stub_llm())
    with pytest.raises(UnknownCharacterError):
        app.character("moriarty")


def test_select_fires_callback(store, stub_llm):
    selected = []
    app = _app(store, stub_llm(), on_character_selected=selected.append)
    character = app.select("captain-nova")
    assert app.selected is character
    assert selected == [character]
    app.deselect()
    assert app.selected is None


# ── Conversations ────────────────────────────────────────


async def test_send_persists_and_notifies(store, stub_llm, recorder):
    app = _app(store, stub_llm(["Ahoy", "!"]), on_messages_published=recorder)

    assert await _drain(app.send("captain-nova", "Hello")) == ["Ahoy", "Ahoy!"]

    history = app.history("captain-nova")
    assert [(m.role, m.text) for m in history] == [("user", "Hello"), ("model", "Ahoy!")]
    assert history[-1].is_streaming is False
    assert recorder.last() == history
    assert all(cid == "captain-nova" for cid, _ in recorder.calls)


async def test_send_uses_stored_history(store, stub_llm):
    llm = stub_llm(["ok"])
    app = _app(store, llm)
    await _drain(app.send("sherlock", "one"))
    await _drain(app.send("sherlock", "two"))
    assert [m.text for m in app.history("sherlock")] == ["one", "ok", "two", "ok"]


async def test_restart_rehydrates_remote_context(data_dir, stub_llm):
    first_run = _app(MessageStore(data_dir), stub_llm(["Elementary."]))
    await _drain(first_run.send("sherlock", "Who did it?"))

    # New process: fresh store instance, fresh registry.
    store = MessageStore(data_dir)
    store.load()
    llm = stub_llm(["The butler."])
    second_run = _app(store, llm)
    await _drain(second_run.send("sherlock", "Are you sure?"))

    _, history, message = llm.calls[0]
    assert history == [
        Turn(role="user", text="Who did it?"),
        Turn(role="model", text="Elementary."),
    ]
    assert message == "Are you sure?"
    assert [m.text for m in second_run.history("sherlock")] == [
        "Who did it?", "Elementary.", "Are you sure?", "The butler.",
    ]


async def test_clear_drops_log_and_remote_context(store, stub_llm, recorder):
    llm = stub_llm(["ok"])
    app = _app(store, llm, on_messages_published=recorder)
    await _drain(app.send("sherlock", "remember this"))

    app.clear("sherlock")
    assert app.history("sherlock") == []
    assert "sherlock" not in app.registry
    assert recorder.calls[-1] == ("sherlock", [])

    await _drain(app.send("sherlock", "fresh start"))
    _, history, _ = llm.calls[-1]
    assert history == []


async def test_clear_refused_while_reply_streams(data_dir, store, stub_llm):
    app = _app(store, stub_llm(["ok"]))
    await _drain(app.send("sherlock", "secret"))

    stream = app.send("sherlock", "second")
    assert await anext(stream) == "ok"
    with pytest.raises(TurnInProgressError):
        app.clear("sherlock")
    await _drain(stream)
    assert [m.text for m in app.history("sherlock")] == ["secret", "ok", "second", "ok"]

    app.clear("sherlock")
    assert MessageStore(data_dir).load() == {}


async def test_language_selection_not_persisted(store, stub_llm):
    llm = stub_llm(["Bonjour"])
    app = _app(store, llm)
    await _drain(app.send("grandma-rosa", "Hello", "French"))
    assert app.history("grandma-rosa")[0].text == "Hello"
    assert "French" in llm.calls[0][2]
