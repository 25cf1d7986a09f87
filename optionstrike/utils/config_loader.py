"""
Configuration loader with secrets support.

This module provides utilities to load configuration files and merge
API keys from a separate secrets.yaml file.
"""

import copy
import logging
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def default_config_dir() -> Path:
    # optionstrike/utils/config_loader.py -> project root
    return Path(__file__).resolve().parent.parent.parent / "config"


def load_secrets(config_dir: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load secrets from config/secrets.yaml if it exists.

    Args:
        config_dir: Directory containing config files. If None, uses the
                   config/ directory at the project root.

    Returns:
        Dictionary of secrets, or empty dict if the secrets file doesn't exist.
    """
    config_dir = Path(config_dir) if config_dir is not None else default_config_dir()
    secrets_file = config_dir / "secrets.yaml"

    if not secrets_file.exists():
        return {}

    try:
        with open(secrets_file) as f:
            secrets = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load secrets from {secrets_file}: {e}")
        return {}

    if not isinstance(secrets, dict):
        logger.warning(f"Ignoring {secrets_file}: expected a mapping")
        return {}
    return secrets


def get_secret_api_key(secrets: Dict[str, Any], source_name: str) -> str:
    """Return data_sources.<source_name>.api_key from a secrets dict, or ''."""
    source = (secrets.get("data_sources") or {}).get(source_name)
    if isinstance(source, dict):
        key = source.get("api_key") or source.get("api_token") or ""
        return key.strip() if isinstance(key, str) else ""
    return ""


def merge_secrets_into_config(
    config: Dict[str, Any],
    secrets: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Merge data_sources secrets (e.g., api_key) into config["data_sources"].

    Sources present only in the secrets file are added.

    Returns:
        Updated copy of the configuration dictionary
    """
    if not secrets:
        return config

    merged = copy.deepcopy(config)

    secret_sources = secrets.get("data_sources") or {}
    if secret_sources:
        sources = merged.setdefault("data_sources", {})
        for source_name, source_secrets in secret_sources.items():
            if not isinstance(source_secrets, dict):
                continue
            existing = sources.get(source_name)
            if isinstance(existing, dict):
                existing.update(source_secrets)
            else:
                sources[source_name] = dict(source_secrets)

    return merged


def load_config_with_secrets(
    config_file: Path,
    secrets_file: Optional[Path] = None,
) -> Dict[str, Any]:
    """
    Load a configuration file and merge secrets into it.

    Args:
        config_file: Path to the main configuration YAML file
        secrets_file: Optional path to secrets file. If None, uses secrets.yaml
                      next to the config file

    Returns:
        Configuration dictionary with secrets merged in
    """
    config_file = Path(config_file)
    with open(config_file) as f:
        config = yaml.safe_load(f) or {}

    if secrets_file:
        with open(secrets_file) as f:
            secrets = yaml.safe_load(f) or {}
    else:
        secrets = load_secrets(config_file.parent)

    return merge_secrets_into_config(config, secrets)
