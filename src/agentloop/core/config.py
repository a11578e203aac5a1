"""
Configuration management for agentloop.

Loads settings from environment variables and provides a centralized
configuration object for all components.

Configuration precedence (highest to lowest):
1. Explicit kwargs passed to AgentConfig (CLI options end up here)
2. Environment variables (AGENTLOOP_* prefix)
3. .env file
4. pyproject.toml [tool.agentloop] section
5. Hardcoded defaults
"""

import logging
import sys
from pathlib import Path
from typing import Any, ClassVar

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from ..models.enums import CacheBackendType, LogLevel
from ..utils.token_counter import CONTEXT_THRESHOLD, KEEP_TOOL_USES, TOKEN_BUDGET

logger = logging.getLogger(__name__)

DEFAULT_RUN_TIMEOUT_SECONDS = 10 * 60
DEFAULT_MAX_HISTORY_TURNS = 10


def load_pyproject_defaults(pyproject_path: Path | None = None) -> dict[str, Any]:
    """
    Load defaults from the [tool.agentloop] section in pyproject.toml.

    Args:
        pyproject_path: File to read (default: ./pyproject.toml)

    Returns:
        Dictionary of configuration overrides from pyproject.toml
    """
    pyproject_path = pyproject_path or Path("pyproject.toml")

    if not pyproject_path.exists():
        return {}

    try:
        with pyproject_path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        logger.warning(f"Could not load pyproject.toml: {e}")
        return {}
    except tomllib.TOMLDecodeError as e:
        logger.warning(f"Could not parse pyproject.toml: {e}")
        return {}

    tool_config = data.get("tool", {}).get("agentloop", {})
    if tool_config:
        logger.debug(f"Loaded {len(tool_config)} settings from pyproject.toml")
    return tool_config


class PyProjectTomlSettingsSource(PydanticBaseSettingsSource):
    """
    A pydantic-settings source that loads configuration from pyproject.toml.

    Reads the [tool.agentloop] table so project defaults can live next to
    the packaging metadata.
    """

    def get_field_value(self, field_name: str, field_info: Any) -> tuple[Any, str, bool]:
        """Not used in this implementation."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load and return configuration from pyproject.toml."""
        return load_pyproject_defaults()


class AgentConfig(BaseSettings):
    """
    Main configuration for the agent engine.

    Every component also accepts its settings explicitly; this object is the
    process-level default they fall back to.
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENTLOOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Secret fields that should be excluded from exports by default
    SECRET_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {
            "openai_api_key",
            "anthropic_api_key",
            "gemini_api_key",
            "redis_password",
        }
    )

    # LLM provider (LiteLLM)
    model: str = Field(
        default="openai/gpt-4o-mini",
        description="Primary model in LiteLLM format (provider/model)",
    )
    fallback_models: str | None = Field(
        default=None, description="Comma-separated list of fallback models"
    )
    llm_timeout: int = Field(default=60, description="Request timeout in seconds per LLM call")
    llm_max_retries: int = Field(
        default=3, description="Attempts for transient LLM transport failures"
    )
    temperature: float = Field(default=0.0, description="Sampling temperature")
    max_output_tokens: int | None = Field(
        default=None, description="Cap on generated tokens per LLM call"
    )

    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    anthropic_api_key: str | None = Field(default=None, description="Anthropic API key")
    gemini_api_key: str | None = Field(default=None, description="Google Gemini API key")

    # Context budget
    token_budget: int = Field(
        default=TOKEN_BUDGET, description="Hard ceiling on estimated scratchpad tokens"
    )
    context_threshold: int = Field(
        default=CONTEXT_THRESHOLD, description="Soft trigger for tool-use eviction"
    )
    keep_tool_uses: int = Field(
        default=KEEP_TOOL_USES, description="Most recent tool-use entries never evicted"
    )

    # Run limits
    max_tool_calls: int = Field(default=10, description="Tool calls allowed per run")
    run_timeout_seconds: float = Field(
        default=DEFAULT_RUN_TIMEOUT_SECONDS,
        description="Wall-clock deadline after which a run is cancelled",
    )
    max_history_turns: int = Field(
        default=DEFAULT_MAX_HISTORY_TURNS,
        description="Most recent answered turns replayed ahead of a query (0 disables replay)",
    )

    # Request cache
    cache_backend: CacheBackendType = Field(
        default=CacheBackendType.MEMORY, description="memory, disk or redis"
    )
    cache_max_size: int = Field(default=1000, description="Entries kept by the memory backend")
    cache_ttl_seconds: int | None = Field(
        default=None, description="Maximum age accepted on cache reads (None = never expire)"
    )
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379)
    redis_db: int = Field(default=0)
    redis_password: str | None = Field(default=None)

    # Storage
    data_dir: Path = Field(
        default=Path(".agentloop"),
        description="Root directory for long-term history and the disk cache",
    )

    # Monitoring and Logging
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    enable_rich_console: bool = Field(
        default=True, description="Enable rich console output (banners, tables)"
    )
    log_file: Path | None = Field(
        default=None,
        description="Path to main application log file (set to None to disable file logging)",
    )
    log_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Maximum log file size before rotation"  # 10MB
    )
    log_backup_count: int = Field(default=5, description="Number of backup log files to keep")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize the sources and their priority for loading configuration.

        Returns:
            Tuple of settings sources in priority order
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            PyProjectTomlSettingsSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("token_budget", "context_threshold", "max_tool_calls", "cache_max_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Limits must be positive"""
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v

    @field_validator("keep_tool_uses", "max_history_turns")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Value must be >= 0, got {v}")
        return v

    @field_validator("run_timeout_seconds")
    @classmethod
    def validate_run_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"run_timeout_seconds must be positive, got {v}")
        if v > 3600:
            logger.warning(f"Very long run_timeout_seconds ({v:,.0f}s). Hung runs may linger.")
        return v

    @model_validator(mode="after")
    def validate_cross_field_constraints(self) -> "AgentConfig":
        """The eviction trigger must sit below the hard budget"""
        if self.context_threshold >= self.token_budget:
            raise ValueError(
                f"context_threshold ({self.context_threshold:,}) must be lower than "
                f"token_budget ({self.token_budget:,})"
            )
        return self

    def get_fallback_models(self) -> list[str]:
        """Parse the comma-separated fallback list."""
        if not self.fallback_models:
            return []
        return [m.strip() for m in self.fallback_models.split(",") if m.strip()]

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / "cache"

    def ensure_log_directory(self) -> None:
        """Ensure the log directory exists."""
        if self.log_file and self.log_file.parent:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance
_config: AgentConfig | None = None


def get_config() -> AgentConfig:
    """
    Get the global configuration instance.

    Returns:
        AgentConfig instance
    """
    global _config
    if _config is None:
        _config = AgentConfig()
        _config.ensure_log_directory()
    return _config


def set_config(config: AgentConfig) -> None:
    """Install an explicit configuration as the process-wide default."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration (mainly for testing)."""
    global _config
    _config = None
