"""Configuration management with hierarchical loading."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from idleweaver.infrastructure.exceptions import ConfigurationError
from idleweaver.infrastructure.logger import get_logger

logger = get_logger(__name__)


class IdleConfig(BaseModel):
    """Idle trigger thresholds, all in seconds."""

    idle_threshold_seconds: float = Field(default=600.0, ge=0)
    user_silent_threshold_seconds: float = Field(default=600.0, ge=0)
    cooldown_seconds: float = Field(default=1800.0, ge=0)


class ExecutorConfig(BaseModel):
    """Task execution limits and retry policy."""

    max_concurrent: int = Field(default=4, ge=1)
    timeout_seconds: float = Field(default=300.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    retry_backoff_initial_seconds: float = Field(default=0.0, ge=0)
    retry_backoff_max_seconds: float = Field(default=60.0, ge=0)
    retry_backoff_multiplier: float = Field(default=2.0, ge=1)
    retry_jitter: bool = False


class OrchestratorConfig(BaseModel):
    """Heartbeat and decomposition settings."""

    heartbeat_interval_ms: int = Field(default=60000, ge=1)
    enable_decomposition: bool = True


class Config(BaseModel):
    """Main configuration model."""

    version: str = "0.1.0"
    log_level: str = "INFO"
    idle: IdleConfig = Field(default_factory=IdleConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)


class ConfigManager:
    """Manage configuration loading from multiple sources with hierarchy."""

    ENV_MAPPINGS: dict[str, list[str]] = {
        "IDLEWEAVER_LOG_LEVEL": ["log_level"],
        "IDLEWEAVER_IDLE_THRESHOLD_SECONDS": ["idle", "idle_threshold_seconds"],
        "IDLEWEAVER_USER_SILENT_THRESHOLD_SECONDS": ["idle", "user_silent_threshold_seconds"],
        "IDLEWEAVER_COOLDOWN_SECONDS": ["idle", "cooldown_seconds"],
        "IDLEWEAVER_MAX_CONCURRENT": ["executor", "max_concurrent"],
        "IDLEWEAVER_TIMEOUT_SECONDS": ["executor", "timeout_seconds"],
        "IDLEWEAVER_MAX_RETRIES": ["executor", "max_retries"],
        "IDLEWEAVER_HEARTBEAT_INTERVAL_MS": ["orchestrator", "heartbeat_interval_ms"],
    }

    def __init__(self, project_root: Path | None = None) -> None:
        """Initialize config manager.

        Args:
            project_root: Root directory of the project (default: current directory)
        """
        self.project_root = project_root or Path.cwd()
        self._config: Config | None = None

    def load_config(self) -> Config:
        """Load configuration from all sources in hierarchy order.

        Configuration hierarchy (highest priority last):
        1. System defaults (embedded in Config model)
        2. Project defaults (.idleweaver/config.yaml)
        3. User overrides (~/.idleweaver/config.yaml)
        4. Project local overrides (.idleweaver/local.yaml)
        5. Environment variables (IDLEWEAVER_* prefix)

        Returns:
            Merged configuration

        Raises:
            ConfigurationError: If a file is malformed or a value is out of range
        """
        if self._config is not None:
            return self._config

        config_dict: dict[str, Any] = {}

        for path in (
            self.project_root / ".idleweaver" / "config.yaml",
            Path.home() / ".idleweaver" / "config.yaml",
            self.project_root / ".idleweaver" / "local.yaml",
        ):
            if path.exists():
                config_dict = self._merge_dicts(config_dict, self._load_yaml(path))
                logger.debug("config_file_loaded", path=str(path))

        config_dict = self._apply_env_vars(config_dict)

        try:
            self._config = Config(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration: {e.error_count()} error(s)\n{e}",
                remediation="Fix the values in .idleweaver/*.yaml or IDLEWEAVER_* variables",
            ) from e
        return self._config

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load YAML configuration file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Expected a mapping at the top of {path}")
        return data

    def _merge_dicts(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_vars(self, config_dict: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variables with IDLEWEAVER_ prefix."""
        for env_var, path in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            current = config_dict
            for key in path[:-1]:
                current = current.setdefault(key, {})
            # Values are validated and coerced by the pydantic models
            current[path[-1]] = value

        return config_dict

    def get_log_dir(self) -> Path:
        """Get path to log directory."""
        log_dir = self.project_root / ".idleweaver" / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir
