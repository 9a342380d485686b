import httpx
import pytest
from structlog.testing import capture_logs

from armadai.agent import Agent, AgentMetadata
from armadai.anthropic_api import AnthropicProvider
from armadai.cli_provider import CliProvider
from armadai.config import ArmadaiConfig
from armadai.contracts import CompletionRequest
from armadai.errors import ConfigurationError, UnknownProviderError, UnsupportedFeatureError
from armadai.factory import ProviderFactory, known_provider_names
from armadai.google_api import GoogleProvider
from armadai.stub_provider import StubProvider


class DictSecrets:
    def __init__(self, keys: dict[str, str] | None = None) -> None:
        self.keys = keys or {}

    def api_key(self, provider: str) -> str | None:
        return self.keys.get(provider)


def _agent(**metadata) -> Agent:
    return Agent(name="a", metadata=AgentMetadata(**metadata))


def _factory(env=None, secrets=None, which=lambda _: None, cfg=None) -> ProviderFactory:
    return ProviderFactory(
        cfg or ArmadaiConfig(),
        secrets=DictSecrets(secrets),
        env=env or {},
        which=which,
        client=httpx.AsyncClient(),
    )


def test_cli_provider_uses_agent_command_args_and_timeout():
    p = _factory().create(_agent(provider="cli", command="echo", args=["-n"], timeout=3))
    assert isinstance(p, CliProvider)
    assert p.argv("x") == ["echo", "-n", "x"]
    assert p.timeout_seconds == 3


def test_cli_provider_without_command_is_a_configuration_error():
    with pytest.raises(ConfigurationError, match="requires 'command'"):
        _factory().create(_agent(provider="cli"))


def test_unknown_provider_lists_known_names():
    with pytest.raises(UnknownProviderError) as exc:
        _factory().create(_agent(provider="nope"))
    assert exc.value.known == sorted(known_provider_names())
    for name in ("anthropic", "claude", "cli", "codex", "gemini", "google", "openai", "proxy"):
        assert name in str(exc.value)


def test_api_backend_reads_key_from_env():
    f = _factory(env={"ANTHROPIC_API_KEY": "sk-env"}, secrets={"anthropic": "sk-file"})
    p = f.create(_agent(provider="anthropic", model="claude-sonnet-4-5"))
    assert isinstance(p, AnthropicProvider)
    assert p.api_key == "sk-env"
    assert f.resolved_keys == ["sk-env"]


def test_api_backend_falls_back_to_secrets_store():
    p = _factory(secrets={"google": "g-file"}).create(_agent(provider="google"))
    assert isinstance(p, GoogleProvider)
    assert p.api_key == "g-file"


def test_missing_key_names_the_environment_variable():
    with pytest.raises(ConfigurationError, match="GOOGLE_API_KEY"):
        _factory().create(_agent(provider="google"))


def test_unified_tool_prefers_installed_cli_with_default_args():
    p = _factory(which=lambda cmd: f"/usr/bin/{cmd}").create(_agent(provider="claude"))
    assert isinstance(p, CliProvider)
    assert p.argv("hi") == ["claude", "-p", "hi"]


def test_unified_tool_keeps_agent_args_and_command_override():
    p = _factory(which=lambda cmd: f"/usr/bin/{cmd}").create(
        _agent(provider="gemini", command="gemini-beta", args=["--yolo"])
    )
    assert isinstance(p, CliProvider)
    assert p.argv("hi") == ["gemini-beta", "--yolo", "hi"]


def test_unified_tool_falls_back_to_api_when_cli_missing():
    f = _factory(env={"ANTHROPIC_API_KEY": "sk-env"})
    p = f.create(_agent(provider="claude", model="claude-sonnet-4-5"))
    assert isinstance(p, AnthropicProvider)
    assert p.metadata().name == "anthropic"


def test_unified_tool_api_fallback_requires_its_key():
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        _factory().create(_agent(provider="codex"))


def test_base_urls_come_from_config():
    cfg = ArmadaiConfig(anthropic_base_url="http://localhost:9000/v1/")
    p = _factory(env={"ANTHROPIC_API_KEY": "k"}, cfg=cfg).create(_agent(provider="anthropic"))
    assert p.base_url == "http://localhost:9000/v1"


@pytest.mark.asyncio
async def test_openai_is_declared_but_not_implemented():
    p = _factory(env={"OPENAI_API_KEY": "k"}).create(_agent(provider="openai", model="gpt-4o"))
    assert isinstance(p, StubProvider)
    with pytest.raises(UnsupportedFeatureError, match="not yet implemented"):
        await p.complete(CompletionRequest(model="gpt-4o"))


def test_proxy_does_not_require_a_key():
    p = _factory().create(_agent(provider="proxy"))
    assert isinstance(p, StubProvider)
    assert p.api_key is None


def test_unified_tool_logs_cli_route():
    with capture_logs() as logs:
        _factory(which=lambda cmd: f"/usr/bin/{cmd}").create(_agent(provider="gemini"))
    [event] = [e for e in logs if e["event"] == "provider_resolved"]
    assert event["via"] == "cli"
    assert event["tool"] == "gemini"
    assert event["command"] == "gemini"
    assert event["log_level"] == "info"


def test_unified_tool_logs_api_route():
    with capture_logs() as logs:
        _factory(env={"GOOGLE_API_KEY": "g"}).create(_agent(provider="gemini"))
    [event] = [e for e in logs if e["event"] == "provider_resolved"]
    assert event["via"] == "api"
    assert event["provider"] == "google"


def test_stub_does_not_advertise_streaming():
    meta = _factory().create(_agent(provider="proxy")).metadata()
    assert meta.name == "proxy"
    assert meta.supports_streaming is False
