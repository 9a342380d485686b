import pytest

from armadai.agent import AgentMode
from armadai.errors import AgentNotFoundError, ConfigurationError
from armadai.project import DirectoryAgentSource, find_agent_file, load_agent_yaml


def test_load_agent_yaml_defaults_name_to_file_stem(tmp_path):
    path = tmp_path / "reviewer.yaml"
    path.write_text(
        "system_prompt: Review code.\n"
        "metadata:\n"
        "  provider: anthropic\n"
        "  model: claude-sonnet-4-5\n"
        "  model_fallback: [claude-haiku-4-5]\n"
        "  rate_limit: 10/min\n"
        "  mode: guided\n",
        encoding="utf-8",
    )

    agent = load_agent_yaml(path)

    assert agent.name == "reviewer"
    assert agent.source == path
    assert agent.system_prompt == "Review code."
    assert agent.metadata.model_fallback == ["claude-haiku-4-5"]
    assert agent.metadata.mode is AgentMode.GUIDED
    assert agent.metadata.temperature == 0.7


def test_load_agent_yaml_rejects_non_mapping(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_agent_yaml(path)


def test_find_agent_file_prefers_top_level_then_searches_subdirectories(tmp_path):
    (tmp_path / "team").mkdir()
    nested = tmp_path / "team" / "writer.yml"
    nested.write_text("metadata: {provider: cli, command: echo}\n", encoding="utf-8")
    assert find_agent_file(tmp_path, "writer") == nested

    top = tmp_path / "writer.yaml"
    top.write_text("metadata: {provider: cli, command: echo}\n", encoding="utf-8")
    assert find_agent_file(tmp_path, "writer") == top

    assert find_agent_file(tmp_path, "nobody") is None
    assert find_agent_file(tmp_path / "missing", "writer") is None


def test_directory_source_resolves_loads_and_reports_mode(tmp_path):
    (tmp_path / "a.yaml").write_text("metadata: {provider: cli, command: echo}\n", encoding="utf-8")
    source = DirectoryAgentSource(tmp_path, mode=AgentMode.GUIDED)

    agent = source.load(source.resolve("a"))

    assert agent.metadata.command == "echo"
    assert source.default_mode() is AgentMode.GUIDED
    with pytest.raises(AgentNotFoundError, match="'zzz' not found"):
        source.resolve("zzz")
