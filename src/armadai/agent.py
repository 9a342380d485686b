from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class AgentMode(str, Enum):
    GUIDED = "guided"
    AUTONOMOUS = "autonomous"


class AgentMetadata(BaseModel):
    """Technical configuration of an agent, as declared in its definition file."""

    provider: str
    model: str | None = None
    command: str | None = None
    args: list[str] | None = None
    temperature: float = 0.7
    max_tokens: int | None = None
    timeout: float | None = Field(default=None, description="Seconds; CLI backends only")
    rate_limit: str | None = Field(default=None, description='e.g. "10/min"')
    model_fallback: list[str] = Field(default_factory=list)
    mode: AgentMode | None = None
    tags: list[str] = Field(default_factory=list)


class Agent(BaseModel):
    name: str
    metadata: AgentMetadata
    system_prompt: str = ""
    source: Path | None = None

    def request_model(self) -> str:
        """Model id sent to the backend; CLI agents use their command as a stand-in."""
        return self.metadata.model or self.metadata.command or "default"
