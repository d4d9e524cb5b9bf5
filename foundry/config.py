"""
Configuration management for foundry.

Loads engine settings from $FOUNDRY_HOME/config.yaml (default
~/.config/foundry/config.yaml). An optional `env_file` entry names a dotenv
file whose variables are loaded into the process environment, for apparatuses
that need credentials.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

# Step ceiling applied when none is configured
DEFAULT_MAX_STEPS = 10


class ConfigError(Exception):
    """Configuration validation error."""
    pass


@dataclass
class FoundryConfig:
    """
    Engine settings.

    Attributes:
        max_steps: Transitions allowed per run before StepLimitExceeded
        timeout_s: Wall-clock budget per run in seconds; None disables it
        trace: Whether runs record a Medium trace
        log_level: Logging level for the foundry logger
        log_format: "structured" (JSON) or "pretty" (rich console)
        log_file: Optional path of a log file
        env_file: Optional dotenv file loaded by load_config()
    """
    max_steps: int = DEFAULT_MAX_STEPS
    timeout_s: Optional[float] = None
    trace: bool = True
    log_level: str = "INFO"
    log_format: str = "pretty"
    log_file: Optional[str] = None
    env_file: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate configuration values."""
        if isinstance(self.max_steps, bool) or not isinstance(self.max_steps, int) or self.max_steps < 1:
            raise ConfigError(f"max_steps must be a positive integer, got {self.max_steps!r}")
        if self.timeout_s is not None:
            if isinstance(self.timeout_s, bool) or not isinstance(self.timeout_s, (int, float)) or self.timeout_s <= 0:
                raise ConfigError(f"timeout_s must be a positive number, got {self.timeout_s!r}")
        if self.log_format not in ("structured", "pretty"):
            raise ConfigError(f"log_format must be 'structured' or 'pretty', got {self.log_format!r}")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Unknown log_level: {self.log_level!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FoundryConfig":
        """
        Build a config from a mapping, rejecting unknown keys.

        Raises:
            ConfigError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {unknown}")
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def get_foundry_home() -> Path:
    """Return the foundry home directory ($FOUNDRY_HOME or ~/.config/foundry)."""
    env_home = os.environ.get("FOUNDRY_HOME")
    if env_home:
        return Path(env_home)
    return Path("~/.config/foundry").expanduser()


def load_config(config_path: Optional[Path] = None) -> FoundryConfig:
    """
    Load foundry configuration from YAML.

    Args:
        config_path: Path to the config file. Defaults to $FOUNDRY_HOME/config.yaml

    Returns:
        FoundryConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If the file is not valid YAML or holds invalid values
    """
    if config_path is None:
        config_path = get_foundry_home() / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"foundry config.yaml not found at {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping: {config_path}")

    config = FoundryConfig.from_dict(data)

    if config.env_file:
        env_path = Path(config.env_file).expanduser()
        if env_path.exists():
            load_dotenv(env_path)

    return config
