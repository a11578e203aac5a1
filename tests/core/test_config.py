"""
Unit tests for the configuration module.

Tests cover:
- pyproject.toml [tool.agentloop] loading
- Precedence (kwargs > env > pyproject.toml > defaults)
- Field and cross-field validation
- The process-wide config accessor
"""

import pytest
from pydantic import ValidationError

from agentloop.core.config import (
    AgentConfig,
    get_config,
    load_pyproject_defaults,
    reset_config,
    set_config,
)
from agentloop.models.enums import CacheBackendType, LogLevel


@pytest.fixture
def isolated_dir(tmp_path, monkeypatch):
    """Run in an empty directory with no AGENTLOOP_* variables set."""
    monkeypatch.chdir(tmp_path)
    for name in ("MODEL", "MAX_TOOL_CALLS", "TOKEN_BUDGET", "CONTEXT_THRESHOLD", "LOG_LEVEL"):
        monkeypatch.delenv(f"AGENTLOOP_{name}", raising=False)
    return tmp_path


class TestPyProjectLoading:
    """Tests for pyproject.toml configuration loading."""

    def test_load_pyproject_defaults_success(self, isolated_dir):
        """Test successful loading of [tool.agentloop] configuration."""
        (isolated_dir / "pyproject.toml").write_text(
            """
[tool.agentloop]
max_tool_calls = 4
model = "anthropic/claude-3-5-sonnet"
cache_backend = "disk"
"""
        )
        defaults = load_pyproject_defaults()

        assert defaults == {
            "max_tool_calls": 4,
            "model": "anthropic/claude-3-5-sonnet",
            "cache_backend": "disk",
        }

    def test_missing_file(self, isolated_dir):
        assert load_pyproject_defaults() == {}

    def test_missing_tool_section(self, isolated_dir):
        (isolated_dir / "pyproject.toml").write_text('[project]\nname = "x"\n')
        assert load_pyproject_defaults() == {}

    def test_invalid_toml(self, isolated_dir):
        """Test that a broken pyproject.toml is ignored, not fatal."""
        (isolated_dir / "pyproject.toml").write_text("[tool.agentloop\nbroken")
        assert load_pyproject_defaults() == {}

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text("[tool.agentloop]\nkeep_tool_uses = 2\n")
        assert load_pyproject_defaults(path) == {"keep_tool_uses": 2}


class TestConfigPrecedence:
    """Tests for the order in which sources override each other."""

    def test_hardcoded_defaults(self, isolated_dir):
        config = AgentConfig()
        assert config.model == "openai/gpt-4o-mini"
        assert config.max_tool_calls == 10
        assert config.token_budget == 150_000
        assert config.context_threshold == 100_000
        assert config.keep_tool_uses == 5
        assert config.run_timeout_seconds == 600
        assert config.max_history_turns == 10
        assert config.cache_backend == CacheBackendType.MEMORY
        assert config.log_level == LogLevel.INFO

    def test_pyproject_overrides_defaults(self, isolated_dir):
        (isolated_dir / "pyproject.toml").write_text("[tool.agentloop]\nmax_tool_calls = 3\n")
        assert AgentConfig().max_tool_calls == 3

    def test_env_overrides_pyproject(self, isolated_dir, monkeypatch):
        (isolated_dir / "pyproject.toml").write_text("[tool.agentloop]\nmax_tool_calls = 3\n")
        monkeypatch.setenv("AGENTLOOP_MAX_TOOL_CALLS", "7")
        assert AgentConfig().max_tool_calls == 7

    def test_kwargs_override_env(self, isolated_dir, monkeypatch):
        monkeypatch.setenv("AGENTLOOP_MAX_TOOL_CALLS", "7")
        assert AgentConfig(max_tool_calls=2).max_tool_calls == 2

    def test_dotenv_file(self, isolated_dir):
        (isolated_dir / ".env").write_text("AGENTLOOP_MODEL=gemini/gemini-2.0-flash\n")
        assert AgentConfig().model == "gemini/gemini-2.0-flash"


class TestConfigValidation:
    """Tests for field and cross-field validation."""

    def test_threshold_must_be_below_budget(self, isolated_dir):
        with pytest.raises(ValidationError, match="must be lower than"):
            AgentConfig(token_budget=1000, context_threshold=1000)

    @pytest.mark.parametrize(
        "field", ["token_budget", "context_threshold", "max_tool_calls", "cache_max_size"]
    )
    def test_positive_fields(self, isolated_dir, field):
        with pytest.raises(ValidationError, match="must be positive"):
            AgentConfig(**{field: 0})

    def test_keep_tool_uses_may_be_zero(self, isolated_dir):
        assert AgentConfig(keep_tool_uses=0).keep_tool_uses == 0
        with pytest.raises(ValidationError):
            AgentConfig(keep_tool_uses=-1)

    def test_max_history_turns_may_be_zero(self, isolated_dir):
        assert AgentConfig(max_history_turns=0).max_history_turns == 0
        with pytest.raises(ValidationError, match=">= 0"):
            AgentConfig(max_history_turns=-1)

    def test_run_timeout_must_be_positive(self, isolated_dir):
        with pytest.raises(ValidationError):
            AgentConfig(run_timeout_seconds=0)

    def test_fallback_models_parsing(self, isolated_dir):
        config = AgentConfig(fallback_models=" openai/gpt-4o , ,anthropic/claude-3-haiku")
        assert config.get_fallback_models() == ["openai/gpt-4o", "anthropic/claude-3-haiku"]
        assert AgentConfig().get_fallback_models() == []

    def test_derived_directories(self, isolated_dir):
        config = AgentConfig(data_dir=isolated_dir / "data")
        assert config.cache_dir == isolated_dir / "data" / "cache"

    def test_ensure_log_directory(self, isolated_dir):
        config = AgentConfig(log_file=isolated_dir / "logs" / "agent.log")
        config.ensure_log_directory()
        assert (isolated_dir / "logs").is_dir()


class TestGlobalConfig:
    """Tests for the process-wide accessor."""

    def test_get_config_is_cached(self, isolated_dir):
        assert get_config() is get_config()

    def test_set_and_reset(self, isolated_dir):
        explicit = AgentConfig(max_tool_calls=1)
        set_config(explicit)
        assert get_config() is explicit

        reset_config()
        assert get_config() is not explicit
