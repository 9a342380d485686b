from __future__ import annotations

from typing import Any

import httpx
import structlog

from .config import ANTHROPIC_API_BASE
from .contracts import CompletionRequest, CompletionResponse
from .errors import UpstreamProtocolError
from .http_provider import HttpApiProvider, load_event_json, split_system_messages
from .pricing import ANTHROPIC_PRICES
from .streaming import TextStream

log = structlog.get_logger()

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096


def parse_sse_event(data: str) -> str | None:
    """Return the text of a `content_block_delta` event; other events carry nothing we need."""
    event = load_event_json(data)
    if event is None or event.get("type") != "content_block_delta":
        return None
    delta = event.get("delta")
    if not isinstance(delta, dict):
        return None
    text = delta.get("text")
    return text if isinstance(text, str) else None


def cost(model: str, tokens_in: int, tokens_out: int) -> float:
    return ANTHROPIC_PRICES.cost(model, tokens_in, tokens_out)


class AnthropicProvider(HttpApiProvider):
    name = "anthropic"
    models = (
        "claude-opus-4-6",
        "claude-sonnet-4-5-20250929",
        "claude-haiku-4-5-20251001",
    )

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = ANTHROPIC_API_BASE,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 120.0,
        default_max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        super().__init__(api_key, base_url=base_url, client=client, timeout_seconds=timeout_seconds)
        self.default_max_tokens = default_max_tokens

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION}

    def build_payload(self, request: CompletionRequest, *, stream: bool = False) -> dict[str, Any]:
        system, turns = split_system_messages(request)
        payload: dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens or self.default_max_tokens,
            "messages": [{"role": m.role, "content": m.content} for m in turns],
            "temperature": request.temperature,
        }
        if system:
            payload["system"] = system
        if stream:
            payload["stream"] = True
        return payload

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        data = await self._post_json(
            f"{self.base_url}/messages", self.build_payload(request), headers=self._headers()
        )

        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise UpstreamProtocolError("Missing content in anthropic response.")
        text = "".join(
            b["text"] for b in blocks if isinstance(b, dict) and isinstance(b.get("text"), str)
        )

        usage = data.get("usage") or {}
        tokens_in = int(usage.get("input_tokens") or 0)
        tokens_out = int(usage.get("output_tokens") or 0)
        model = data.get("model") or request.model

        log.debug("anthropic_complete_ok", model=model, tokens_in=tokens_in, tokens_out=tokens_out)
        return CompletionResponse(
            content=text,
            model=model,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost=cost(model, tokens_in, tokens_out),
        )

    async def stream(self, request: CompletionRequest) -> TextStream:
        return await self._open_event_stream(
            f"{self.base_url}/messages",
            self.build_payload(request, stream=True),
            parse_sse_event,
            headers=self._headers(),
        )
