"""Engine settings loaded from YAML.

Example ``.dagflow/config.yaml``:

    max_parallel: 8
    log_level: INFO
    defaults:
      retry_delay_ms: 250
    nodes:
      process-payment:
        max_retries: 3
        timeout_ms: 30000

``defaults`` sits underneath every node's own config; ``nodes`` entries sit
on top of it, so operators can retune retries and timeouts without touching
code. Only the fields written in the file are applied.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dagflow.core.models import DagError, NodeConfig, NodeDefinition

CONFIG_RELATIVE_PATH = Path(".dagflow/config.yaml")


class ConfigError(DagError):
    """Invalid or unreadable settings file."""

    pass


class EngineSettings(BaseModel):
    """Engine-wide settings."""

    model_config = ConfigDict(extra="forbid")

    max_parallel: int | None = Field(default=None, ge=1)
    log_level: str = "INFO"
    defaults: NodeConfig = Field(default_factory=NodeConfig)
    nodes: dict[str, NodeConfig] = Field(default_factory=dict)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log_level: {v}")
        return level

    def resolve(self, node: NodeDefinition) -> NodeConfig:
        """Effective config for a node: defaults < node config < file overrides."""
        return self.defaults.overlay(node.config).overlay(self.nodes.get(node.id))


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read settings file {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping at the top level")
    return data


def load_settings(path: str | Path) -> EngineSettings:
    """Load and validate settings from a YAML file.

    Raises:
        ConfigError: If the file is unreadable, not YAML or fails validation
    """
    path = Path(path)
    data = _load_yaml(path)
    try:
        return EngineSettings.model_validate(data)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid settings in {path}: {details}")


def find_settings(repo_path: str | Path | None = None) -> EngineSettings:
    """Load ``.dagflow/config.yaml`` under ``repo_path`` (default: cwd) if present."""
    root = Path(repo_path) if repo_path else Path.cwd()
    config_path = root / CONFIG_RELATIVE_PATH
    if config_path.exists():
        return load_settings(config_path)
    return EngineSettings()
