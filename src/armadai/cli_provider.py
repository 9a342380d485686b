from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

import structlog

from .contracts import CompletionRequest, CompletionResponse, ProviderMetadata
from .errors import CommandError, RequestTimeoutError
from .streaming import TextStream

log = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 300.0


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill the child if it is still running and wait for it to exit."""
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
    await proc.wait()


class CliProvider:
    """Runs `command *args <input>` and treats stdout as the model output.

    Local tools have no pricing model, so token counts and cost are zero.
    """

    def __init__(self, command: str, args: list[str] | None = None, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.command = command
        self.args = list(args or [])
        self.timeout_seconds = timeout_seconds

    def argv(self, input_text: str) -> list[str]:
        return [self.command, *self.args, input_text]

    def metadata(self) -> ProviderMetadata:
        return ProviderMetadata(name=f"cli:{self.command}", models=(self.command,), supports_streaming=True)

    async def _spawn(self, input_text: str) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *self.argv(input_text),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CommandError(f"Failed to spawn CLI command {self.command!r}: {e}") from e

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        proc = await self._spawn(request.last_user_content())
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            await _reap(proc)
            raise RequestTimeoutError(f"CLI command timed out after {self.timeout_seconds:g}s") from e

        if proc.returncode != 0:
            raise CommandError(
                f"CLI command failed (exit status {proc.returncode}): "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )

        log.debug("cli_complete_ok", command=self.command, stdout_bytes=len(stdout))
        return CompletionResponse(content=stdout.decode("utf-8", errors="replace"), model=self.command)

    async def stream(self, request: CompletionRequest) -> TextStream:
        proc = await self._spawn(request.last_user_content())
        return TextStream(self._lines(proc))

    async def _lines(self, proc: asyncio.subprocess.Process) -> AsyncIterator[str]:
        assert proc.stdout is not None and proc.stderr is not None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        # Drained concurrently; a full stderr pipe would stall the child before stdout closes.
        stderr_task = asyncio.create_task(proc.stderr.read())
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise RequestTimeoutError(f"CLI command timed out after {self.timeout_seconds:g}s")
                try:
                    line = await asyncio.wait_for(proc.stdout.readline(), timeout=remaining)
                except asyncio.TimeoutError as e:
                    raise RequestTimeoutError(f"CLI command timed out after {self.timeout_seconds:g}s") from e
                if not line:
                    break
                yield line.decode("utf-8", errors="replace").rstrip("\r\n")

            stderr = await stderr_task
            returncode = await proc.wait()
            if returncode != 0:
                raise CommandError(
                    f"CLI command failed (exit status {returncode}): "
                    f"{stderr.decode('utf-8', errors='replace').strip()}"
                )
        finally:
            if not stderr_task.done():
                stderr_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await stderr_task
            await _reap(proc)
