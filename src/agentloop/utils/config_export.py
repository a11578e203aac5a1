"""Configuration export/import utilities"""
from pathlib import Path
from typing import Optional

import yaml

from ..core.config import AgentConfig
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_EXPORT_PATH = Path(".agentloop/config.yaml")


def export_config(
    config: AgentConfig,
    output_path: Optional[Path] = None,
    include_secrets: bool = False
) -> Path:
    """
    Export configuration to YAML file.

    Args:
        config: Configuration to export
        output_path: Where to save (default: .agentloop/config.yaml)
        include_secrets: Whether to include API keys (default: False)

    Returns:
        Path to exported config file
    """
    output_path = output_path or DEFAULT_EXPORT_PATH
    output_path.parent.mkdir(parents=True, exist_ok=True)

    exclude_fields = set() if include_secrets else set(AgentConfig.SECRET_FIELDS)
    config_dict = config.model_dump(exclude=exclude_fields, exclude_none=True, mode="json")

    with output_path.open("w") as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=True, indent=2)

    logger.info("config_exported", path=str(output_path), include_secrets=include_secrets)
    return output_path


def import_config(config_path: Path) -> AgentConfig:
    """
    Import configuration from YAML file.

    Args:
        config_path: Path to config YAML file

    Returns:
        AgentConfig instance

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the document is not a mapping
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        config_dict = yaml.safe_load(f) or {}

    if not isinstance(config_dict, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    logger.info("config_imported", path=str(config_path))
    return AgentConfig(**config_dict)
