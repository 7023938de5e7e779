"""
Configuration File Loader Utility

Unified loading for YAML and JSON policy files with automatic format detection
and secret reference resolution (secrets://SECRET_NAME).
"""

import os
import re
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from core.secrets import get_secret

logger = logging.getLogger(__name__)

# Secret reference pattern: secrets://SECRET_NAME
SECRET_REFERENCE_PATTERN = re.compile(r'^secrets://(.+)$')


def load_config_file(file_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file with automatic format detection.

    Args:
        file_path: Path to the configuration file

    Returns:
        Dict containing the loaded configuration

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file format is unsupported or content is invalid
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    file_extension = Path(file_path).suffix.lower()

    with open(file_path, 'r', encoding='utf-8') as f:
        content = f.read()

    try:
        if file_extension == '.json':
            data = json.loads(content)
        elif file_extension in ['.yaml', '.yml']:
            data = yaml.safe_load(content)
        else:
            try:
                data = json.loads(content)
            except json.JSONDecodeError:
                data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        logger.error(f"Failed to parse configuration file {file_path}: {e}")
        raise ValueError(f"Invalid configuration file {file_path}: {e}") from e

    if data is None:
        raise ValueError(f"Configuration file is empty: {file_path}")
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {file_path}")

    return data


def _resolve_single_secret(value: str) -> str:
    """
    Resolve a single secrets:// reference to its actual value.

    Raises:
        ValueError: If secret cannot be resolved
    """
    match = SECRET_REFERENCE_PATTERN.match(value)
    if not match:
        return value

    secret_name = match.group(1)
    resolved = get_secret(secret_name)
    if resolved is None:
        raise ValueError(f"Secret '{secret_name}' not found")

    return resolved


def resolve_secret_references(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively resolve all secrets:// references in a configuration dictionary.

    Example:
        config = {"access_key": "secrets://CONTACT_ACCESS_KEY"}
        resolved = resolve_secret_references(config)
        # {"access_key": "<value of CONTACT_ACCESS_KEY>"}
    """
    def _resolve_value(value: Any) -> Any:
        if isinstance(value, str):
            return _resolve_single_secret(value)
        elif isinstance(value, dict):
            return {k: _resolve_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_resolve_value(item) for item in value]
        return value

    return _resolve_value(config)


def load_config_with_secrets(file_path: str) -> Dict[str, Any]:
    """
    Load configuration from file and resolve all secrets:// references.

    Example:
        # policy.yaml:
        # access_key_mode: required
        # access_key: secrets://CONTACT_ACCESS_KEY

        config = load_config_with_secrets("policy.yaml")
    """
    config = load_config_file(file_path)
    return resolve_secret_references(config)


def find_config_file(base_name: str, search_paths: Optional[list] = None) -> Optional[str]:
    """
    Find a configuration file by trying different extensions and locations.

    Args:
        base_name: Base name of the config file (without extension)
        search_paths: List of directories to search in. If None, uses default paths.

    Returns:
        Path to the found config file, or None if not found
    """
    if search_paths is None:
        search_paths = ['config', '']

    for search_path in search_paths:
        for ext in ['.yaml', '.yml', '.json']:
            candidate = os.path.join(search_path, f"{base_name}{ext}")
            if os.path.exists(candidate):
                logger.info(f"Found configuration file: {candidate}")
                return candidate

    return None
