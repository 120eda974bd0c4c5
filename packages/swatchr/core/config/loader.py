"""Configuration loading utilities with JSON and YAML support."""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError
import yaml

from swatchr.core.config.models import AppConfig, ExportConfig
from swatchr.core.errors import ConfigLoadError

logger = logging.getLogger(__name__)

ENV_PREFIX = "SWATCHR_"
CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


def detect_format(file_path: Path | str) -> str:
    """Detect config file format from extension.

    Raises:
        ValueError: If format cannot be determined

    Example:
        >>> detect_format("icons.json")
        'json'
        >>> detect_format("icons.yml")
        'yaml'
    """
    suffix = Path(file_path).suffix.lower()
    if suffix == ".json":
        return "json"
    if suffix in (".yaml", ".yml"):
        return "yaml"
    raise ValueError(f"Unsupported config format: {suffix}")


def load_config(path: str | Path) -> dict[str, Any]:
    """Load a raw configuration mapping from JSON or YAML.

    Raises:
        FileNotFoundError: If config file does not exist
        ValueError: If format is not supported or file content is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file does not exist: {path}")

    fmt = detect_format(path)
    text = path.read_text(encoding="utf-8")
    if fmt == "json":
        try:
            content = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    else:
        try:
            content = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e

    # safe_load returns None for empty files
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(f"Config root must be a mapping in {path}")
    return content


def load_export_config(path: str | Path) -> ExportConfig:
    """Load and validate one export config.

    Relative ``output_dir`` values are resolved against the config file's
    directory, so a batch run from anywhere writes to the same place.

    Raises:
        ConfigLoadError: If the file is missing, unparseable or invalid
    """
    path = Path(path)
    try:
        raw = load_config(path)
        config = ExportConfig.model_validate(raw)
    except (OSError, ValueError, ValidationError) as e:
        raise ConfigLoadError(f"Could not load config {path}: {e}") from e

    if not config.output_dir.is_absolute():
        config = config.model_copy(update={"output_dir": (path.parent / config.output_dir)})
    return config


def _env_overrides(env: Mapping[str, str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for field_name in AppConfig.model_fields:
        value = env.get(f"{ENV_PREFIX}{field_name.upper()}")
        if value is not None:
            overrides[field_name] = value
    return overrides


def load_app_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load application settings.

    Values come from the optional file, then ``SWATCHR_<FIELD>`` environment
    variables override them (e.g. ``SWATCHR_MAX_CONCURRENT_DOWNLOADS=10``).

    Raises:
        ConfigLoadError: If the file exists but is invalid
    """
    env = os.environ if env is None else env
    raw: dict[str, Any] = {}
    if path is not None and Path(path).exists():
        try:
            raw = load_config(path)
        except ValueError as e:
            raise ConfigLoadError(str(e)) from e
    elif path is not None:
        logger.debug(f"App config {path} not found, using defaults")

    raw.update(_env_overrides(env))
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid app config: {e}") from e


def resolve_api_token(config: AppConfig, env: Mapping[str, str] | None = None) -> str | None:
    """Read the API token from the environment variable named by the config."""
    env = os.environ if env is None else env
    token = env.get(config.api_token_env)
    return token.strip() if token else None
