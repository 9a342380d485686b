from armadai import metrics
from armadai.metrics import RunMetrics


def test_summary_line_format():
    m = RunMetrics(agent="a", provider="cli:echo", model="echo", tokens_in=1, tokens_out=2, cost=0.5, duration_ms=7)
    assert m.summary_line() == "[a] model=echo tokens=1/2 cost=$0.500000 duration=7ms"


def test_exporter_starts_once_per_process(monkeypatch):
    started: list[tuple[int, str]] = []
    monkeypatch.setattr(metrics, "start_http_server", lambda port, addr: started.append((port, addr)))
    monkeypatch.setattr(metrics, "_exporter_started", False)

    assert metrics.maybe_start_metrics(enable=False, bind="127.0.0.1", port=9109) is False
    assert metrics.maybe_start_metrics(enable=True, bind="127.0.0.1", port=9109) is True
    assert metrics.maybe_start_metrics(enable=True, bind="127.0.0.1", port=9109) is False

    assert started == [(9109, "127.0.0.1")]
