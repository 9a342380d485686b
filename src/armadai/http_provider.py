from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import structlog

from .contracts import ChatMessage, CompletionRequest, ProviderMetadata
from .errors import (
    AuthenticationError,
    ConfigurationError,
    ProviderError,
    RateLimitError,
    RequestTimeoutError,
    UpstreamConnectionError,
    UpstreamHTTPError,
    UpstreamProtocolError,
)
from .streaming import TextStream, decode_sse

log = structlog.get_logger()


def vendor_error_message(body: str) -> str:
    """Prefer the nested `error.message` both vendors send over the raw body."""
    try:
        data = json.loads(body)
    except ValueError:
        return body.strip()
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
    return body.strip()


def split_system_messages(request: CompletionRequest) -> tuple[str | None, list[ChatMessage]]:
    """Fold `system` turns into the system prompt; keep user/assistant turns in order."""
    system_parts: list[str] = [request.system_prompt] if request.system_prompt else []
    turns: list[ChatMessage] = []
    for msg in request.messages:
        if msg.role == "system":
            if msg.content:
                system_parts.append(msg.content)
            continue
        if msg.role not in ("user", "assistant"):
            raise ConfigurationError(f"Unsupported message role: {msg.role!r}")
        turns.append(msg)
    system = "\n\n".join(system_parts).strip() or None
    return system, turns


class HttpApiProvider:
    """Shared plumbing for vendor HTTP backends."""

    name = "http"
    models: tuple[str, ...] = ()

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 120.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def metadata(self) -> ProviderMetadata:
        return ProviderMetadata(name=self.name, models=self.models, supports_streaming=True)

    def _error_for(self, resp: httpx.Response) -> ProviderError:
        detail = vendor_error_message(resp.text)
        message = f"{self.name} API error ({resp.status_code} {resp.reason_phrase}): {detail}"
        if resp.status_code in (401, 403):
            return AuthenticationError(message)
        if resp.status_code == 429:
            retry_after = resp.headers.get("retry-after")
            retry_seconds = int(retry_after) if retry_after and retry_after.isdigit() else None
            return RateLimitError(retry_after_seconds=retry_seconds, message=message)
        return UpstreamHTTPError(resp.status_code, message)

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await self._client.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{self.name} API request timed out.") from e
        except httpx.HTTPError as e:
            raise UpstreamConnectionError(f"{self.name} API request failed: {e}") from e

        if resp.status_code >= 400:
            raise self._error_for(resp)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamProtocolError(f"{self.name} API returned a non-JSON body.") from e
        if not isinstance(data, dict):
            raise UpstreamProtocolError(f"{self.name} API returned an unexpected body.")
        return data

    async def _open_event_stream(
        self,
        url: str,
        payload: dict[str, Any],
        parse_event: Callable[[str], str | None],
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> TextStream:
        request = self._client.build_request("POST", url, json=payload, headers=headers, params=params)
        try:
            resp = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{self.name} API request timed out.") from e
        except httpx.HTTPError as e:
            raise UpstreamConnectionError(f"{self.name} API request failed: {e}") from e

        if resp.status_code >= 400:
            try:
                await resp.aread()
            finally:
                await resp.aclose()
            raise self._error_for(resp)

        return TextStream(self._events(resp, parse_event))

    async def _events(
        self, resp: httpx.Response, parse_event: Callable[[str], str | None]
    ) -> AsyncIterator[str]:
        try:
            async for piece in decode_sse(resp.aiter_bytes(), parse_event):
                yield piece
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{self.name} stream timed out.") from e
        except httpx.HTTPError as e:
            raise UpstreamConnectionError(f"{self.name} stream failed: {e}") from e
        finally:
            await resp.aclose()


def load_event_json(data: str) -> dict[str, Any] | None:
    """Decode one SSE payload; malformed or non-object payloads are dropped."""
    try:
        event = json.loads(data)
    except ValueError:
        log.debug("sse_event_dropped", reason="invalid_json", size=len(data))
        return None
    return event if isinstance(event, dict) else None
