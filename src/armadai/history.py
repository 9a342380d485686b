from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from .metrics import RunMetrics

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS runs (
        id          TEXT PRIMARY KEY,
        agent       TEXT NOT NULL,
        input       TEXT NOT NULL,
        output      TEXT NOT NULL,
        provider    TEXT NOT NULL,
        model       TEXT NOT NULL,
        tokens_in   INTEGER NOT NULL DEFAULT 0,
        tokens_out  INTEGER NOT NULL DEFAULT 0,
        cost        REAL NOT NULL DEFAULT 0.0,
        duration_ms INTEGER NOT NULL DEFAULT 0,
        status      TEXT NOT NULL DEFAULT 'success',
        created_at  TEXT NOT NULL DEFAULT (datetime('now'))
    );

    CREATE INDEX IF NOT EXISTS idx_runs_agent ON runs(agent);
    CREATE INDEX IF NOT EXISTS idx_runs_created ON runs(created_at);
"""


class RunRecorder(Protocol):
    def record(self, metrics: RunMetrics, input_text: str, output: str) -> None: ...


@dataclass(frozen=True)
class RunRecord:
    agent: str
    input: str
    output: str
    provider: str
    model: str
    tokens_in: int
    tokens_out: int
    cost: float
    duration_ms: int
    status: str


@dataclass(frozen=True)
class CostSummary:
    agent: str
    total_runs: int
    total_cost: float
    total_tokens_in: int
    total_tokens_out: int


class SqliteRunHistory:
    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(_SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def record(self, metrics: RunMetrics, input_text: str, output: str) -> None:
        self.conn.execute(
            """INSERT INTO runs (id, agent, input, output, provider, model,
                                 tokens_in, tokens_out, cost, duration_ms, status)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'success')""",
            (
                uuid4().hex,
                metrics.agent,
                input_text,
                output,
                metrics.provider,
                metrics.model,
                metrics.tokens_in,
                metrics.tokens_out,
                metrics.cost,
                metrics.duration_ms,
            ),
        )
        self.conn.commit()

    def history(self, agent: str | None = None, limit: int = 20) -> list[RunRecord]:
        columns = "agent, input, output, provider, model, tokens_in, tokens_out, cost, duration_ms, status"
        if agent is None:
            rows = self.conn.execute(
                f"SELECT {columns} FROM runs ORDER BY created_at DESC, rowid DESC LIMIT ?", (limit,)
            )
        else:
            rows = self.conn.execute(
                f"SELECT {columns} FROM runs WHERE agent = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (agent, limit),
            )
        return [RunRecord(**dict(row)) for row in rows.fetchall()]

    def costs_summary(self, agent: str | None = None) -> list[CostSummary]:
        query = """SELECT agent, COUNT(*) AS total_runs, SUM(cost) AS total_cost,
                          SUM(tokens_in) AS total_tokens_in, SUM(tokens_out) AS total_tokens_out
                   FROM runs {where} GROUP BY agent ORDER BY total_cost DESC"""
        if agent is None:
            rows = self.conn.execute(query.format(where=""))
        else:
            rows = self.conn.execute(query.format(where="WHERE agent = ?"), (agent,))
        return [CostSummary(**dict(row)) for row in rows.fetchall()]
