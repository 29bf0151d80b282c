"""FastAPI endpoints under /api.

Endpoint groups: characters (catalog), languages, messages (per character),
chat (streaming turn), settings. Responses use the camelCase wire names of
the models.
"""

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from persona_chat import config as app_config
from persona_chat.catalog import LANGUAGES
from persona_chat.chat import PersonaChat, TurnInProgressError, UnknownCharacterError
from persona_chat.models import Character

router = APIRouter()


class ChatBody(BaseModel):
    message: str
    language: str | None = None


class UpdateSettings(BaseModel):
    llm: dict[str, Any] | None = None
    fragment_timeout: float | None = None
    default_language: str | None = None


def _chat(request: Request) -> PersonaChat:
    return request.app.state.chat


def _character(request: Request, character_id: str) -> Character:
    try:
        return _chat(request).character(character_id)
    except UnknownCharacterError:
        raise HTTPException(404, "Character not found")


async def _deltas(first: str | None, partials: AsyncIterator[str]) -> AsyncIterator[str]:
    """Turn the coordinator's growing reply into the newly arrived text."""
    sent = 0
    async with aclosing(partials):
        if first is not None:
            yield first
            sent = len(first)
        async for text in partials:
            yield text[sent:]
            sent = len(text)


@router.get("/health")
async def health():
    return {"status": "ok"}


# ── Catalog ───────────────────────────────────────────────


@router.get("/characters")
async def list_characters(request: Request):
    return [c.model_dump(by_alias=True) for c in _chat(request).characters]


@router.get("/characters/{character_id}")
async def get_character(request: Request, character_id: str):
    return _character(request, character_id).model_dump(by_alias=True)


@router.get("/languages")
async def list_languages():
    return list(LANGUAGES)


# ── Messages & chat ───────────────────────────────────────


@router.get("/characters/{character_id}/messages")
async def get_messages(request: Request, character_id: str):
    """Get the stored conversation with a character."""
    character = _character(request, character_id)
    return [
        m.model_dump(by_alias=True, exclude_none=True)
        for m in _chat(request).history(character.id)
    ]


@router.delete("/characters/{character_id}/messages")
async def clear_messages(request: Request, character_id: str):
    """Clear the conversation and drop the remote context."""
    character = _character(request, character_id)
    try:
        _chat(request).clear(character.id)
    except TurnInProgressError:
        raise HTTPException(409, "A reply is still in progress")
    return {"ok": True}


@router.post("/characters/{character_id}/chat")
async def character_chat(request: Request, character_id: str, body: ChatBody):
    """Send a user message and stream the reply as plain text."""
    character = _character(request, character_id)
    if not body.message.strip():
        raise HTTPException(400, "Message is empty")
    language = body.language or request.app.state.default_language
    turn = _chat(request).begin(character.id, body.message, language)
    if turn is None:
        raise HTTPException(409, "A reply is already in progress")
    # Start the turn here so it is running before the response is handed off.
    try:
        first = await anext(turn)
    except StopAsyncIteration:
        first = None
    return StreamingResponse(_deltas(first, turn), media_type="text/plain; charset=utf-8")


# ── Settings ──────────────────────────────────────────────


def _masked(config: dict[str, Any]) -> dict[str, Any]:
    llm = dict(config["llm"])
    if llm.get("api_key"):
        llm["api_key"] = "********"
    return {**config, "llm": llm}


@router.get("/settings")
async def get_settings(request: Request):
    return _masked(app_config.get_config(request.app.state.data_dir))


@router.patch("/settings")
async def update_settings(request: Request, body: UpdateSettings):
    """Persist settings.

    The default language applies to the next chat at once. LLM and fragment
    timeout changes take effect on the next start.
    """
    fields = body.model_dump(exclude_unset=True)
    updated = app_config.update_config(request.app.state.data_dir, fields)
    request.app.state.default_language = updated["default_language"]
    return _masked(updated)
