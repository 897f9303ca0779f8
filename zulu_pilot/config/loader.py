"""
Configuration Loader.

Reads the provider configuration graph from a YAML or JSON file:

    defaultProvider: local
    providers:
      local:
        type: ollama
        model: qwen2.5-coder
      cloud:
        type: openai
        apiKey: env:OPENAI_API_KEY
        model: gpt-4o-mini
        enabled: false
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from zulu_pilot.errors import ValidationError

from .schemas import UnifiedConfiguration

logger = logging.getLogger(__name__)

YAML_SUFFIXES = {".yaml", ".yml"}


def parse_configuration(data: Any) -> UnifiedConfiguration:
    """
    Validate an already-loaded configuration mapping.

    Raises:
        ValidationError: If the data does not describe a valid configuration
    """
    if not isinstance(data, dict):
        raise ValidationError(
            f"Configuration must be a mapping, got {type(data).__name__}", "config"
        )
    try:
        return UnifiedConfiguration.model_validate(data)
    except SchemaValidationError as e:
        raise ValidationError(f"Invalid configuration: {e}", "config", cause=e) from e


def load_configuration(path: str | Path) -> UnifiedConfiguration:
    """
    Load and validate a configuration file.

    Args:
        path: Path to a .json, .yaml or .yml file

    Returns:
        Validated UnifiedConfiguration

    Raises:
        ValidationError: If the file is missing, unreadable or invalid
    """
    file_path = Path(path)

    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(
            f"Cannot read configuration file {file_path}: {e}", "config", cause=e
        ) from e

    if file_path.suffix.lower() in YAML_SUFFIXES:
        import yaml

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValidationError(
                f"Invalid YAML in {file_path}: {e}", "config", cause=e
            ) from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(
                f"Invalid JSON in {file_path}: {e}", "config", cause=e
            ) from e

    config = parse_configuration(data)
    logger.debug(
        f"Loaded configuration from {file_path}: "
        f"{len(config.providers)} providers, default={config.default_provider}"
    )
    return config
