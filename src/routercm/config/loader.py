"""
Configuration loading and validation for routercm.
"""
from pathlib import Path
from typing import Dict, Optional, Any

import yaml
from pydantic import BaseModel, Field, field_validator

from ..utils.exceptions import ConfigError


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    console: bool = True

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        """Validate that the level is a known logging level."""
        if v.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()


class DispatchConfig(BaseModel):
    """Timeout budgets for cluster fan-out."""
    read_timeout_seconds: float = 10.0
    write_timeout_seconds: float = 15.0

    @field_validator("read_timeout_seconds", "write_timeout_seconds")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Dispatch timeouts must be positive")
        return v


class DeviceConfig(BaseModel):
    """Device client settings."""
    request_timeout_seconds: float = 10.0
    group_timeout_seconds: float = 30.0
    verify_tls: bool = False

    @field_validator("request_timeout_seconds", "group_timeout_seconds")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Device timeouts must be positive")
        return v


class StorageConfig(BaseModel):
    """Storage settings for the node directory and audit log."""
    database_path: str = "~/.routercm/routercm.db"

    def resolved_path(self) -> Path:
        return Path(self.database_path).expanduser()


class HealthCheckConfig(BaseModel):
    """Periodic node health check settings."""
    enabled: bool = True
    interval_seconds: float = 60.0
    initial_delay_seconds: float = 5.0

    @field_validator("interval_seconds")
    @classmethod
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("Health check interval must be positive")
        return v


class AuditConfig(BaseModel):
    """Audit log retention settings."""
    retention_days: int = 90
    prune_interval_hours: float = 24 * 7
    initial_delay_seconds: float = 60.0

    @field_validator("retention_days")
    @classmethod
    def validate_retention(cls, v):
        if v <= 0:
            raise ValueError("Audit retention must be at least one day")
        return v

    @field_validator("prune_interval_hours")
    @classmethod
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("Prune interval must be positive")
        return v


class Config(BaseModel):
    """Main configuration object."""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    device: DeviceConfig = Field(default_factory=DeviceConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    health_check: HealthCheckConfig = Field(default_factory=HealthCheckConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)


def load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """
    Load and parse a YAML file.

    Args:
        file_path: Path to YAML file

    Returns:
        Parsed YAML content as dictionary

    Raises:
        ConfigError: If file doesn't exist or is invalid
    """
    if not file_path.exists():
        raise ConfigError(f"Configuration file not found: {file_path}")

    try:
        with open(file_path, "r") as f:
            data = yaml.safe_load(f)
            if data is None:
                return {}
            return data
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {file_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading {file_path}: {e}")


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load routercm configuration from YAML file.

    Args:
        config_path: Path to config file (default: config/default.yaml)

    Returns:
        Validated Config object

    Raises:
        ConfigError: If configuration is invalid
    """
    if config_path is None:
        # Default to config/default.yaml relative to project root
        config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    data = load_yaml_file(Path(config_path))

    try:
        return Config(**data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration: {e}")


def save_config(config: Config, config_path: Path) -> None:
    """
    Save configuration to YAML file.

    Raises:
        ConfigError: If unable to save configuration
    """
    try:
        config_dict = config.model_dump(mode="json")

        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

    except OSError as e:
        raise ConfigError(f"Error saving configuration: {e}")
