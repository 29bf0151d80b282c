"""LLM client: streaming HTTP connection to a chat model backend.

The session layer drives any object matching the protocol:

    def stream(self, system_instruction: str, history: list[Turn],
               message: str) -> AsyncIterator[str]: ...

`history` is the transcript the model should see before `message`. The
iterator yields text fragments in arrival order and raises LLMError on
any transport or service failure, before or during delivery.

Two implementations are provided:

    HttpLLM   - real HTTP client streaming server-sent events. Supports the
                 Gemini API and OpenAI-compatible backends, selected by
                 provider_format.
    EchoLLM   - streams the message back word by word. Useful for
                 smoke-testing the chat wiring without a running model.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Literal, Protocol

import httpx

from persona_chat.models import Turn

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class StreamingLLM(Protocol):
    def stream(
        self, system_instruction: str, history: list[Turn], message: str
    ) -> AsyncIterator[str]: ...


# ---------------------------------------------------------------------------
# HttpLLM: connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["gemini", "openai"]


class HttpLLM:
    """Async streaming client for chat backends.

    Supported formats:
      "gemini"  -> POST /v1beta/models/{model}:streamGenerateContent?alt=sse
                  {"systemInstruction": ..., "contents": [...]}
                  Events: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}
      "openai"  -> POST /v1/chat/completions  {"model": ..., "stream": true, "messages": [...]}
                  Events: {"choices": [{"delta": {"content": "..."}}]}, then [DONE]

    Args:
        provider_url:    Base URL of the backend.
        api_key:         API key, or empty string if not required.
        provider_format: Wire format to use. Defaults to "gemini".
        model:           Model identifier.
        timeout:         HTTP timeout in seconds. Defaults to 120.
        transport:       Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "gemini",
        model: str = DEFAULT_MODEL,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            if self._format == "gemini":
                headers["x-goog-api-key"] = self._api_key
            else:
                headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(
        self, system_instruction: str, history: list[Turn], message: str
    ) -> tuple[str, dict[str, str], dict]:
        """Return (url, query params, body) for the configured format."""
        if self._format == "openai":
            messages = [{"role": "system", "content": system_instruction}]
            messages += [
                {"role": "assistant" if t.role == "model" else "user", "content": t.text}
                for t in history
            ]
            messages.append({"role": "user", "content": message})
            body: dict = {"messages": messages, "stream": True}
            if self._model:
                body["model"] = self._model
            return f"{self._base_url}/v1/chat/completions", {}, body

        # gemini (default)
        contents = [{"role": t.role, "parts": [{"text": t.text}]} for t in history]
        contents.append({"role": "user", "parts": [{"text": message}]})
        body = {"contents": contents}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        url = f"{self._base_url}/v1beta/models/{self._model}:streamGenerateContent"
        return url, {"alt": "sse"}, body

    def _parse_event(self, data: Any) -> str:
        """Extract the text carried by one decoded event ("" if none)."""
        if not isinstance(data, dict):
            return ""
        if isinstance(data.get("error"), dict):
            raise LLMError(f"LLM backend error: {data['error'].get('message', 'unknown')}")

        if self._format == "openai":
            choices = data.get("choices")
            if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
                return ""
            delta = choices[0].get("delta")
            content = delta.get("content") if isinstance(delta, dict) else None
            return content if isinstance(content, str) else ""

        # gemini
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return ""
        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return ""
        return "".join(
            p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
        )

    async def stream(
        self, system_instruction: str, history: list[Turn], message: str
    ) -> AsyncIterator[str]:
        url, params, body = self._build_request(system_instruction, history, message)
        logger.debug(
            "llm stream url=%s history=%d message_len=%d", url, len(history), len(message)
        )

        received = 0
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                async with client.stream(
                    "POST", url, params=params, json=body, headers=self._headers()
                ) as resp:
                    resp.raise_for_status()
                    async for line in resp.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        payload = line[len("data:"):].strip()
                        if payload == "[DONE]":
                            break
                        try:
                            event = json.loads(payload)
                        except json.JSONDecodeError:
                            logger.debug("skipping unparseable event: %r", payload)
                            continue
                        text = self._parse_event(event)
                        if text:
                            received += len(text)
                            yield text
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise LLMError(f"LLM stream interrupted: {e}") from e

        logger.debug("llm stream done chars=%d", received)


# ---------------------------------------------------------------------------
# EchoLLM: streams the message back; useful for wiring smoke tests
# ---------------------------------------------------------------------------

class EchoLLM:
    """Streams the submitted message back word by word. No network calls."""

    async def stream(
        self, system_instruction: str, history: list[Turn], message: str
    ) -> AsyncIterator[str]:
        logger.debug("EchoLLM history=%d message_len=%d", len(history), len(message))
        words = message.split(" ")
        for i, word in enumerate(words):
            yield word if i == 0 else f" {word}"


# ---------------------------------------------------------------------------
# LLMError: raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
