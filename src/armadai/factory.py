"""Map an agent's declared provider name to a concrete backend.

Precedence: the literal "cli" marker, then API backend ids, then unified
tool names (local CLI when installed, else the matching API), else error.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable, Mapping

import httpx
import structlog

from .agent import Agent
from .anthropic_api import AnthropicProvider
from .cli_provider import CliProvider
from .config import ArmadaiConfig
from .contracts import Provider
from .credential_store import FileSecretsStore, SecretsStore
from .errors import ConfigurationError, UnknownProviderError
from .google_api import GoogleProvider
from .stub_provider import StubProvider
from .tools import API_KEY_ENV, UNIFIED_TOOLS, ToolDefinition, find_tool

log = structlog.get_logger()

CLI_PROVIDER = "cli"
API_PROVIDERS = ("anthropic", "google", "openai", "proxy")

Which = Callable[[str], str | None]


def known_provider_names() -> list[str]:
    return [CLI_PROVIDER, *API_PROVIDERS, *(t.name for t in UNIFIED_TOOLS)]


class ProviderFactory:
    def __init__(
        self,
        cfg: ArmadaiConfig | None = None,
        *,
        secrets: SecretsStore | None = None,
        env: Mapping[str, str] | None = None,
        which: Which = shutil.which,
        client: httpx.AsyncClient | None = None,
    ):
        self.cfg = cfg or ArmadaiConfig()
        self.secrets = secrets if secrets is not None else FileSecretsStore(self.cfg.secrets_dir)
        self.env = env if env is not None else os.environ
        self.which = which
        self.client = client
        self.resolved_keys: list[str] = []

    def create(self, agent: Agent) -> Provider:
        name = agent.metadata.provider
        if name == CLI_PROVIDER:
            return self._cli_from_agent(agent)
        if name in API_PROVIDERS:
            return self._api(name)
        tool = find_tool(name)
        if tool is not None:
            return self._unified(tool, agent)
        raise UnknownProviderError(name, known_provider_names())

    __call__ = create

    def _timeout(self, agent: Agent) -> float:
        return agent.metadata.timeout if agent.metadata.timeout is not None else self.cfg.cli_timeout_seconds

    def _cli_from_agent(self, agent: Agent) -> CliProvider:
        if not agent.metadata.command:
            raise ConfigurationError(f"Agent {agent.name!r}: CLI provider requires 'command' in metadata")
        return CliProvider(agent.metadata.command, agent.metadata.args or [], self._timeout(agent))

    def _unified(self, tool: ToolDefinition, agent: Agent) -> Provider:
        if self.which(tool.cli_command) is not None:
            command = agent.metadata.command or tool.cli_command
            args = agent.metadata.args if agent.metadata.args is not None else list(tool.default_args)
            log.info("provider_resolved", agent=agent.name, tool=tool.name, via="cli", command=command)
            return CliProvider(command, args, self._timeout(agent))
        log.info(
            "provider_resolved", agent=agent.name, tool=tool.name, via="api", provider=tool.api_provider
        )
        return self._api(tool.api_provider, env_var=tool.api_key_env)

    def resolve_api_key(self, provider: str, env_var: str | None = None, *, required: bool = True) -> str | None:
        """Environment variable first, then the secrets store."""
        env_var = env_var or API_KEY_ENV[provider]
        key = self.env.get(env_var) or self.secrets.api_key(provider)
        if key:
            self.resolved_keys.append(key)
            return key
        if required:
            raise ConfigurationError(
                f"No API key found for {provider!r}. Set {env_var} or add it to "
                f"{os.path.join(self.cfg.secrets_dir, 'providers.secret.yaml')}"
            )
        return None

    def _api(self, provider: str, *, env_var: str | None = None) -> Provider:
        cfg = self.cfg
        if provider == "anthropic":
            return AnthropicProvider(
                self.resolve_api_key(provider, env_var) or "",
                base_url=cfg.anthropic_base_url,
                client=self.client,
                timeout_seconds=cfg.http_timeout_seconds,
                default_max_tokens=cfg.default_max_tokens,
            )
        if provider == "google":
            return GoogleProvider(
                self.resolve_api_key(provider, env_var) or "",
                base_url=cfg.google_base_url,
                client=self.client,
                timeout_seconds=cfg.http_timeout_seconds,
            )
        if provider == "openai":
            return StubProvider(
                "openai",
                base_url=cfg.openai_base_url,
                api_key=self.resolve_api_key(provider, env_var),
                models=("gpt-4o", "gpt-4o-mini", "o1"),
            )
        if provider == "proxy":
            return StubProvider(
                "proxy",
                base_url=cfg.proxy_base_url,
                api_key=self.resolve_api_key(provider, env_var, required=False),
            )
        raise UnknownProviderError(provider, known_provider_names())


def create_provider(agent: Agent, **kwargs) -> Provider:
    return ProviderFactory(**kwargs).create(agent)
