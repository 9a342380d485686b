"""Sequential agent chains.

Each stage resolves its agent, builds a backend, waits on the agent's rate
limit, calls `complete` (walking the fallback models on model-not-found) and
feeds the response text to the next stage. Any stage failure ends the chain.
"""

from __future__ import annotations

import sqlite3
import sys
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from pathlib import Path
from typing import TextIO

import structlog

from .agent import Agent, AgentMode
from .config import ArmadaiConfig
from .contracts import ChatMessage, CompletionRequest, CompletionResponse, Provider
from .errors import ConfigurationError, ProviderError, is_model_not_found
from .factory import ProviderFactory
from .history import RunRecorder, SqliteRunHistory
from .logging import configure_logging
from .metrics import (
    RunMetrics,
    maybe_start_metrics,
    model_fallback_attempts_total,
    observe_run,
    request_latency_seconds,
    requests_total,
)
from .project import AgentSource, DirectoryAgentSource
from .rate_limiter import RateLimiter, parse_rate

log = structlog.get_logger()

GUIDED_MODE_SUFFIX = (
    "\n\n## Interaction mode: guided\n"
    "Before producing your final answer, ask the clarifying questions you need "
    "to remove ambiguity about the goal, constraints and expected output. "
    "Only proceed once the request is unambiguous."
)

ProviderBuilder = Callable[[Agent], Provider]


class ChainExecutor:
    def __init__(
        self,
        source: AgentSource,
        *,
        provider_factory: ProviderBuilder | None = None,
        recorder: RunRecorder | None = None,
        rate_limiter_factory: Callable[[int], RateLimiter] = RateLimiter,
        stderr: TextIO | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.provider_factory: ProviderBuilder = provider_factory or ProviderFactory()
        self.recorder = recorder
        self._rate_limiter_factory = rate_limiter_factory
        self._stderr = stderr
        self._clock = clock

    def _emit(self, line: str) -> None:
        print(line, file=self._stderr or sys.stderr, flush=True)

    async def run(self, chain: Sequence[str], input_text: str) -> str:
        if not chain:
            raise ConfigurationError("A chain needs at least one agent.")
        current = input_text
        for index, name in enumerate(chain, start=1):
            if len(chain) > 1:
                self._emit(f"--- [{index}/{len(chain)} {name}] ---")
            current, _ = await self.run_stage(name, current)
        return current

    async def run_stage(self, name: str, input_text: str) -> tuple[str, RunMetrics]:
        agent = self.source.load(self.source.resolve(name))
        provider = self.provider_factory(agent)
        try:
            await self._apply_rate_limit(agent)
            request = self.build_request(agent, input_text)
            started = self._clock()
            response = await self._complete(agent, provider, request)
            duration_ms = int((self._clock() - started) * 1000)
        finally:
            close = getattr(provider, "close", None)
            if close is not None:
                await close()

        metrics = RunMetrics(
            agent=name,
            provider=provider.metadata().name,
            model=response.model,
            tokens_in=response.tokens_in,
            tokens_out=response.tokens_out,
            cost=response.cost,
            duration_ms=duration_ms,
        )
        self._emit(metrics.summary_line())
        observe_run(metrics)
        self._record(metrics, input_text, response.content)
        return response.content, metrics

    def effective_mode(self, agent: Agent) -> AgentMode:
        return agent.metadata.mode or self.source.default_mode() or AgentMode.AUTONOMOUS

    def build_request(self, agent: Agent, input_text: str) -> CompletionRequest:
        system_prompt = agent.system_prompt
        if self.effective_mode(agent) is AgentMode.GUIDED:
            system_prompt += GUIDED_MODE_SUFFIX
        return CompletionRequest(
            model=agent.request_model(),
            system_prompt=system_prompt,
            messages=(ChatMessage(role="user", content=input_text),),
            temperature=agent.metadata.temperature,
            max_tokens=agent.metadata.max_tokens,
        )

    async def _apply_rate_limit(self, agent: Agent) -> None:
        # A fresh bucket per call: limits only apply within this one invocation.
        rate = agent.metadata.rate_limit
        if not rate:
            return
        per_minute = parse_rate(rate)
        if per_minute is None:
            log.warning("rate_limit_ignored", agent=agent.name, rate_limit=rate)
            return
        await self._rate_limiter_factory(per_minute).acquire()

    async def _call(self, provider: Provider, request: CompletionRequest) -> CompletionResponse:
        label = provider.metadata().name
        try:
            with request_latency_seconds.labels(provider=label).time():
                response = await provider.complete(request)
        except ProviderError:
            requests_total.labels(provider=label, status="error").inc()
            raise
        requests_total.labels(provider=label, status="success").inc()
        return response

    async def _complete(self, agent: Agent, provider: Provider, request: CompletionRequest) -> CompletionResponse:
        fallbacks = agent.metadata.model_fallback
        try:
            return await self._call(provider, request)
        except ProviderError as e:
            if not fallbacks or not is_model_not_found(e):
                raise
            log.warning("model_not_found", agent=agent.name, model=request.model, error=str(e))
            last_error = e

        for model in fallbacks:
            log.info("model_fallback_attempt", agent=agent.name, model=model)
            try:
                response = await self._call(provider, replace(request, model=model))
            except ProviderError as e:
                model_fallback_attempts_total.labels(agent=agent.name, outcome="error").inc()
                log.warning("model_fallback_failed", agent=agent.name, model=model, error=str(e))
                last_error = e
                continue
            model_fallback_attempts_total.labels(agent=agent.name, outcome="success").inc()
            return response
        raise last_error

    def _record(self, metrics: RunMetrics, input_text: str, output: str) -> None:
        if self.recorder is None:
            return
        try:
            self.recorder.record(metrics, input_text, output)
        except (sqlite3.Error, OSError) as e:
            log.warning("run_record_failed", agent=metrics.agent, error=str(e))


def resolve_input(input_text: str | None, *, stdin: TextIO | None = None) -> str:
    """Literal text, `@path` to read a file, or piped stdin when no text is given."""
    if input_text is not None:
        if input_text.startswith("@"):
            path = Path(input_text[1:])
            try:
                return path.read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigurationError(f"Failed to read input file '{path}': {e}") from e
        return input_text

    stream = stdin or sys.stdin
    if stream.isatty():
        raise ConfigurationError('No input provided. Usage: armadai run <agent> "<input>"')
    data = stream.read()
    if not data:
        raise ConfigurationError("No input provided. Usage: armadai run <agent> <input>")
    return data


async def execute(
    chain: Sequence[str],
    input_text: str | None = None,
    *,
    source: AgentSource | None = None,
    cfg: ArmadaiConfig | None = None,
    provider_factory: ProviderBuilder | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> str:
    """Run a chain end to end and print its final output to stdout."""
    cfg = cfg or ArmadaiConfig()
    factory = provider_factory or ProviderFactory(cfg)
    configure_logging(cfg.log_level, cfg.log_format, secrets=getattr(factory, "resolved_keys", None))
    maybe_start_metrics(enable=cfg.enable_metrics, bind=cfg.metrics_bind, port=cfg.metrics_port)

    text = resolve_input(input_text, stdin=stdin)

    history: SqliteRunHistory | None = None
    if cfg.record_history:
        try:
            history = SqliteRunHistory(cfg.history_db)
        except (sqlite3.Error, OSError) as e:
            log.warning("run_history_unavailable", path=cfg.history_db, error=str(e))

    executor = ChainExecutor(source or DirectoryAgentSource(), provider_factory=factory, recorder=history)
    try:
        output = await executor.run(chain, text)
    finally:
        if history is not None:
            history.close()

    print(output, file=stdout or sys.stdout)
    return output
