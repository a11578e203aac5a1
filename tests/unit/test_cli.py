"""
Tests for the command-line interface.
"""

from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from agentloop import __version__
from agentloop.cli import EventRenderer, app
from agentloop.core.agent import Agent
from agentloop.core.history import LongTermChatHistory
from agentloop.models.contracts import LLMDecision
from agentloop.models.events import ThinkingEvent, ToolEndEvent, ToolProgressEvent
from agentloop.tools.builtin import create_default_registry

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Isolated working directory and data directory for CLI runs."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AGENTLOOP_DATA_DIR", str(tmp_path / "data"))
    with patch("agentloop.cli.setup_logging"):
        yield tmp_path


@pytest.fixture
def scripted_agent(scripted_llm):
    """Patch agent construction so `ask` talks to a scripted provider."""

    def install(*steps):
        llm = scripted_llm(list(steps))

        def build(config, registry=None):
            return Agent(llm=llm, registry=registry or create_default_registry(), config=config)

        return patch("agentloop.cli.Agent.from_config", side_effect=build)

    return install


class TestBasicCommands:
    def test_version(self, cli_env):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_config_show_hides_secrets(self, cli_env, monkeypatch):
        monkeypatch.setenv("AGENTLOOP_OPENAI_API_KEY", "sk-hidden")
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "max_tool_calls" in result.stdout
        assert "sk-hidden" not in result.stdout

    def test_config_export_and_load(self, cli_env):
        output = cli_env / "exported.yaml"
        result = runner.invoke(app, ["config", "export", "--output", str(output)])
        assert result.exit_code == 0
        assert yaml.safe_load(output.read_text())["max_tool_calls"] == 10

        result = runner.invoke(app, ["config", "load", str(output)])
        assert result.exit_code == 0
        assert "Configuration loaded" in result.stdout

    def test_config_load_missing_file(self, cli_env):
        result = runner.invoke(app, ["config", "load", str(cli_env / "absent.yaml")])
        assert result.exit_code == 1


class TestAskCommand:
    def test_empty_query(self, cli_env):
        result = runner.invoke(app, ["ask", "   "])
        assert result.exit_code == 2

    def test_answer_rendered_and_saved(self, cli_env, scripted_agent):
        with scripted_agent(LLMDecision(content="Paris is the capital.")):
            result = runner.invoke(app, ["ask", "Capital of France?"])

        assert result.exit_code == 0
        assert "Paris is the capital." in result.stdout
        history = LongTermChatHistory(cli_env / "data")
        assert history.get_turns() == [("Capital of France?", "Paris is the capital.")]

    def test_provider_error_exit_code(self, cli_env, scripted_agent):
        with scripted_agent(RuntimeError("provider down")):
            result = runner.invoke(app, ["ask", "Hello"])

        assert result.exit_code == 1
        assert "down" in result.stdout

    def test_no_history_flag(self, cli_env, scripted_agent):
        with scripted_agent(LLMDecision(content="Hi")):
            result = runner.invoke(app, ["ask", "Hello", "--no-history"])

        assert result.exit_code == 0
        assert not (cli_env / "data" / "messages" / "chat_history.json").exists()

    def test_replay_of_long_history_is_bounded(self, cli_env, scripted_llm, monkeypatch):
        monkeypatch.setenv("AGENTLOOP_MAX_HISTORY_TURNS", "3")
        history = LongTermChatHistory(cli_env / "data")
        for n in range(40):
            history.add_user_message(f"question {n}")
            history.update_agent_response(f"answer {n}")

        llm = scripted_llm([LLMDecision(content="Fine.")])

        def build(config, registry=None):
            return Agent(llm=llm, registry=registry, config=config)

        with patch("agentloop.cli.Agent.from_config", side_effect=build):
            result = runner.invoke(app, ["ask", "Next question"])

        assert result.exit_code == 0
        contents = [m["content"] for m in llm.calls[0]["messages"][1:]]
        assert contents == [
            "question 37", "answer 37",
            "question 38", "answer 38",
            "question 39", "answer 39",
            "Next question",
        ]
        # Still recorded in full
        assert len(LongTermChatHistory(cli_env / "data").get_messages()) == 41
        assert LongTermChatHistory(cli_env / "data").get_turns()[-1] == ("Next question", "Fine.")

    def test_invalid_override(self, cli_env):
        result = runner.invoke(app, ["ask", "Hello", "--max-tool-calls", "0"])
        assert result.exit_code == 2


class TestHistoryCommand:
    def test_lists_newest_first(self, cli_env):
        history = LongTermChatHistory(cli_env / "data")
        history.add_user_message("older question")
        history.add_user_message("newer question")

        result = runner.invoke(app, ["history"])

        assert result.exit_code == 0
        assert result.stdout.index("newer question") < result.stdout.index("older question")

    def test_empty_history(self, cli_env):
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "No history yet" in result.stdout

    def test_clear(self, cli_env):
        LongTermChatHistory(cli_env / "data").add_user_message("q")

        result = runner.invoke(app, ["history", "--clear"])

        assert result.exit_code == 0
        assert LongTermChatHistory(cli_env / "data").get_messages() == []


class TestCacheCommands:
    def test_stats(self, cli_env):
        result = runner.invoke(app, ["cache", "stats"])
        assert result.exit_code == 0
        assert "memory" in result.stdout

    def test_clear_disk_cache(self, cli_env, monkeypatch):
        monkeypatch.setenv("AGENTLOOP_CACHE_BACKEND", "disk")
        cache_dir = cli_env / "data" / "cache"
        cache_dir.mkdir(parents=True)
        (cache_dir / "abc.json").write_text("{}")

        result = runner.invoke(app, ["cache", "clear"])

        assert result.exit_code == 0
        assert "Removed 1 cache entries" in result.stdout


class TestEventRenderer:
    """Tests for progress batching."""

    def test_rapid_progress_is_batched(self):
        renderer = EventRenderer(batch_ms=60_000)
        with patch("agentloop.cli.console") as mock_console:
            renderer(ToolProgressEvent(tool="t", message="one"))
            renderer(ToolProgressEvent(tool="t", message="two"))
            renderer(ToolProgressEvent(tool="t", message="three"))
            printed = [str(c.args[0]) for c in mock_console.console.print.call_args_list]
            assert len(printed) == 1 and "one" in printed[0]

            renderer(ToolEndEvent(tool="t", result="ok"))
            printed = [str(c.args[0]) for c in mock_console.console.print.call_args_list]
            assert "three" in printed[1]
            assert "two" not in " ".join(printed)

    def test_progress_hidden(self):
        renderer = EventRenderer(show_progress=False)
        with patch("agentloop.cli.console") as mock_console:
            renderer(ToolProgressEvent(tool="t", message="one"))
            renderer(ThinkingEvent())
            assert mock_console.console.print.call_count == 1
