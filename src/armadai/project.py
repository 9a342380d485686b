from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import yaml

from .agent import Agent, AgentMode
from .errors import AgentNotFoundError, ConfigurationError

AGENT_SUFFIXES = (".yaml", ".yml")


class AgentSource(Protocol):
    """Where the chain executor finds agent definitions and project defaults."""

    def resolve(self, name: str) -> Path: ...

    def load(self, path: Path) -> Agent: ...

    def default_mode(self) -> AgentMode | None: ...


def load_agent_yaml(path: Path) -> Agent:
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Agent file {path} must contain a mapping.")
    raw.setdefault("name", path.stem)
    raw["source"] = path
    return Agent.model_validate(raw)


def find_agent_file(agents_dir: Path, name: str, suffixes: tuple[str, ...] = AGENT_SUFFIXES) -> Path | None:
    """Look for `<name><suffix>` directly in `agents_dir`, then anywhere below it."""
    for suffix in suffixes:
        direct = agents_dir / f"{name}{suffix}"
        if direct.is_file():
            return direct
    if not agents_dir.is_dir():
        return None
    for path in sorted(agents_dir.rglob("*")):
        if path.is_file() and path.stem == name and path.suffix in suffixes:
            return path
    return None


class DirectoryAgentSource:
    def __init__(
        self,
        agents_dir: str | Path = "agents",
        *,
        mode: AgentMode | None = None,
        parser: Callable[[Path], Agent] = load_agent_yaml,
        suffixes: tuple[str, ...] = AGENT_SUFFIXES,
    ):
        self.agents_dir = Path(agents_dir)
        self._mode = mode
        self._parser = parser
        self._suffixes = suffixes

    def resolve(self, name: str) -> Path:
        path = find_agent_file(self.agents_dir, name, self._suffixes)
        if path is None:
            raise AgentNotFoundError(f"Agent {name!r} not found in {self.agents_dir}")
        return path

    def load(self, path: Path) -> Agent:
        return self._parser(path)

    def default_mode(self) -> AgentMode | None:
        return self._mode
