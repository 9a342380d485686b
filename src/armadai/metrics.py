from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import Counter, Histogram, start_http_server

requests_total = Counter(
    "armadai_provider_requests_total",
    "Backend calls made by the chain executor",
    labelnames=["provider", "status"],
)

request_latency_seconds = Histogram(
    "armadai_provider_request_latency_seconds",
    "Backend call latency",
    buckets=[0.1, 0.3, 0.5, 1, 2, 5, 10, 30, 60, 120, 300],
    labelnames=["provider"],
)

run_cost_usd_total = Counter(
    "armadai_run_cost_usd_total",
    "Accumulated cost of successful stages",
    labelnames=["agent"],
)

run_tokens_total = Counter(
    "armadai_run_tokens_total",
    "Tokens consumed by successful stages",
    labelnames=["agent", "direction"],
)

model_fallback_attempts_total = Counter(
    "armadai_model_fallback_attempts_total",
    "Fallback models tried after a model-not-found error",
    labelnames=["agent", "outcome"],
)

rate_limiter_wait_seconds = Histogram(
    "armadai_rate_limiter_wait_seconds",
    "Time spent waiting for a rate limiter token",
    buckets=[0.01, 0.1, 0.5, 1, 2, 5, 10, 30, 60],
)


@dataclass(frozen=True)
class RunMetrics:
    agent: str
    provider: str
    model: str
    tokens_in: int
    tokens_out: int
    cost: float
    duration_ms: int

    def summary_line(self) -> str:
        return (
            f"[{self.agent}] model={self.model} tokens={self.tokens_in}/{self.tokens_out} "
            f"cost=${self.cost:.6f} duration={self.duration_ms}ms"
        )


def observe_run(metrics: RunMetrics) -> None:
    run_cost_usd_total.labels(agent=metrics.agent).inc(metrics.cost)
    run_tokens_total.labels(agent=metrics.agent, direction="in").inc(metrics.tokens_in)
    run_tokens_total.labels(agent=metrics.agent, direction="out").inc(metrics.tokens_out)


_exporter_started = False


def maybe_start_metrics(*, enable: bool, bind: str, port: int) -> bool:
    """Start the exporter once per process; returns True only on the call that started it."""
    global _exporter_started
    if not enable or _exporter_started:
        return False
    start_http_server(port, addr=bind)
    _exporter_started = True
    return True
