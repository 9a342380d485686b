from __future__ import annotations

import asyncio
import codecs
import contextlib
from collections.abc import AsyncIterator, Callable
from typing import Any

import structlog

log = structlog.get_logger()

STREAM_CHANNEL_CAPACITY = 64

SSE_EVENT_DELIMITER = "\n\n"
SSE_DATA_PREFIX = "data:"

_END = object()


def split_sse_events(buffer: str) -> tuple[list[str], str]:
    """Split off every complete event; return them plus the unterminated remainder."""
    *events, rest = buffer.split(SSE_EVENT_DELIMITER)
    return [e for e in events if e.strip()], rest


def sse_data_lines(event: str) -> list[str]:
    out: list[str] = []
    for line in event.split("\n"):
        if not line.startswith(SSE_DATA_PREFIX):
            continue
        payload = line[len(SSE_DATA_PREFIX) :].strip()
        if payload:
            out.append(payload)
    return out


async def decode_sse(
    chunks: AsyncIterator[bytes],
    parse_event: Callable[[str], str | None],
) -> AsyncIterator[str]:
    """Accumulate raw bytes, split on blank lines and yield parsed text fragments.

    `parse_event` receives each `data:` payload and returns the fragment to
    emit, or None to skip the event.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for chunk in chunks:
        buffer += decoder.decode(chunk).replace("\r\n", "\n")
        events, buffer = split_sse_events(buffer)
        for event in events:
            for data in sse_data_lines(event):
                text = parse_event(data)
                if text:
                    yield text
    buffer += decoder.decode(b"", final=True)
    if buffer.strip():
        for data in sse_data_lines(buffer.replace("\r\n", "\n")):
            text = parse_event(data)
            if text:
                yield text


class TextStream:
    """Consumer end of a bounded channel fed by a background producer task.

    The producer suspends while the channel is full. Errors raised by the
    source are delivered in order and re-raised by the consumer. `aclose()`
    cancels the producer so abandoned streams release their connection or
    child process.
    """

    def __init__(self, source: AsyncIterator[str], *, capacity: int = STREAM_CHANNEL_CAPACITY):
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=capacity)
        self._finished = False
        self._task = asyncio.create_task(self._pump(source))

    async def _pump(self, source: AsyncIterator[str]) -> None:
        try:
            async with contextlib.aclosing(source) as pieces:  # type: ignore[type-var]
                async for piece in pieces:
                    await self._queue.put(piece)
        except Exception as e:
            await self._queue.put(e)
            return
        await self._queue.put(_END)

    def __aiter__(self) -> TextStream:
        return self

    async def __anext__(self) -> str:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self._finished = True
            raise item
        return item

    async def aclose(self) -> None:
        self._finished = True
        if not self._task.done():
            self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    @property
    def producer_done(self) -> bool:
        return self._task.done()

    async def __aenter__(self) -> TextStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


async def collect(stream: TextStream, sep: str = "") -> str:
    async with stream:
        return sep.join([piece async for piece in stream])
