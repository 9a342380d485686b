from __future__ import annotations

from typing import Any

import httpx
import structlog

from .config import GOOGLE_API_BASE
from .contracts import CompletionRequest, CompletionResponse
from .errors import UpstreamProtocolError
from .http_provider import HttpApiProvider, load_event_json, split_system_messages
from .pricing import GOOGLE_PRICES
from .streaming import TextStream

log = structlog.get_logger()

# The generate-content API calls the assistant side of a conversation "model".
_ROLE_NAMES = {"user": "user", "assistant": "model"}


def parse_sse_event(data: str) -> str | None:
    """Return `candidates[0].content.parts[0].text` of a streamed chunk, if any."""
    event = load_event_json(data)
    if event is None:
        return None
    candidates = event.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    content = candidates[0].get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    return text if isinstance(text, str) else None


def cost(model: str, tokens_in: int, tokens_out: int) -> float:
    return GOOGLE_PRICES.cost(model, tokens_in, tokens_out)


class GoogleProvider(HttpApiProvider):
    name = "google"
    models = (
        "gemini-2.5-pro",
        "gemini-2.5-flash",
        "gemini-2.0-flash",
    )

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = GOOGLE_API_BASE,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 120.0,
    ):
        super().__init__(api_key, base_url=base_url, client=client, timeout_seconds=timeout_seconds)

    def build_payload(self, request: CompletionRequest) -> dict[str, Any]:
        system, turns = split_system_messages(request)
        payload: dict[str, Any] = {
            "contents": [{"role": _ROLE_NAMES[m.role], "parts": [{"text": m.content}]} for m in turns],
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        generation_config: dict[str, Any] = {"temperature": request.temperature}
        if request.max_tokens is not None:
            generation_config["maxOutputTokens"] = request.max_tokens
        payload["generationConfig"] = generation_config
        return payload

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        data = await self._post_json(
            f"{self.base_url}/models/{request.model}:generateContent",
            self.build_payload(request),
            params={"key": self.api_key},
        )

        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise UpstreamProtocolError("Missing candidates in google response.")
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        if not isinstance(content, dict):
            raise UpstreamProtocolError("Missing content in google response.")
        parts = content.get("parts")
        if not isinstance(parts, list):
            raise UpstreamProtocolError("Missing parts in google response.")
        text = "".join(p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str))

        usage = data.get("usageMetadata") or {}
        tokens_in = int(usage.get("promptTokenCount") or 0)
        tokens_out = int(usage.get("candidatesTokenCount") or 0)

        log.debug("google_complete_ok", model=request.model, tokens_in=tokens_in, tokens_out=tokens_out)
        return CompletionResponse(
            content=text,
            model=request.model,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost=cost(request.model, tokens_in, tokens_out),
        )

    async def stream(self, request: CompletionRequest) -> TextStream:
        return await self._open_event_stream(
            f"{self.base_url}/models/{request.model}:streamGenerateContent",
            self.build_payload(request),
            parse_sse_event,
            params={"alt": "sse", "key": self.api_key},
        )
