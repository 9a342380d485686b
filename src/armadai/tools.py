from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ToolDefinition:
    """A unified provider name: run `cli_command` when installed, else call `api_provider`."""

    name: str
    cli_command: str
    default_args: tuple[str, ...]
    api_provider: str
    api_key_env: str


UNIFIED_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition("claude", "claude", ("-p",), "anthropic", "ANTHROPIC_API_KEY"),
    ToolDefinition("gemini", "gemini", ("-p",), "google", "GOOGLE_API_KEY"),
    ToolDefinition("codex", "codex", ("exec",), "openai", "OPENAI_API_KEY"),
)

# Credential variable per API backend.
API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
    "openai": "OPENAI_API_KEY",
    "proxy": "ARMADAI_PROXY_API_KEY",
}


def find_tool(name: str) -> ToolDefinition | None:
    for tool in UNIFIED_TOOLS:
        if tool.name == name:
            return tool
    return None
