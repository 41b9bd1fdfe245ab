"""Configuration export/import utilities"""
from pathlib import Path
from typing import Any, Optional

import yaml

from ..core.config import RelayConfig, load_config
from ..utils.logging import get_logger

logger = get_logger(__name__)


def export_config(config: RelayConfig, output_path: Optional[Path] = None) -> Path:
    """
    Export configuration to a YAML file.

    Args:
        config: Configuration to export
        output_path: Where to save (default: .agentrelay/config.yaml)

    Returns:
        Path to exported config file
    """
    if output_path is None:
        output_path = Path(".agentrelay/config.yaml")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    config_dict = config.model_dump(exclude_none=True, mode="json")
    config_dict["retry"]["retryable_kinds"] = sorted(config_dict["retry"]["retryable_kinds"])

    with output_path.open("w") as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=True, indent=2)

    logger.info("config_exported", path=str(output_path))
    return output_path


def import_config(config_path: Path) -> RelayConfig:
    """
    Build a configuration from a YAML file.

    Values from the file take precedence over environment variables.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If a value fails validation
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        config_dict = yaml.safe_load(f) or {}

    logger.info("config_loaded", path=str(config_path), keys=len(config_dict))
    return load_config(**config_dict)


def config_diff(config1: RelayConfig, config2: RelayConfig) -> dict[str, tuple[Any, Any]]:
    """Dotted setting names whose values differ, mapped to (first, second)."""
    flat1 = _flatten(config1.model_dump(mode="json"))
    flat2 = _flatten(config2.model_dump(mode="json"))
    return {
        key: (flat1.get(key), flat2.get(key))
        for key in sorted(set(flat1) | set(flat2))
        if flat1.get(key) != flat2.get(key)
    }


def _flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{name}."))
        elif isinstance(value, list):
            flat[name] = sorted(value, key=str)
        else:
            flat[name] = value
    return flat
