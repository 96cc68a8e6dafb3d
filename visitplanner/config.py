"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import List

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator


class DefaultsConfig(BaseModel):
    """Default values offered when a caregiver adds slots."""
    slot_duration_minutes: int = 60
    max_people: int = 1

    @field_validator("slot_duration_minutes", "max_people")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure slot defaults are positive."""
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value


class ServerConfig(BaseModel):
    """Where the public booking API listens."""
    host: str = "127.0.0.1"
    port: int = 8000

    @field_validator("port")
    @classmethod
    def validate_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError(f"Port must be between 1 and 65535, got {value}")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    database_path: str = "visitplanner.db"
    timezone: str = "America/Sao_Paulo"
    log_level: str = "INFO"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    premium_accounts: List[str] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    @classmethod
    def load_or_default(cls, config_path: Path) -> "AppConfig":
        """Load the file when present, otherwise fall back to defaults."""
        if config_path.exists():
            return cls.load_from_yaml(config_path)
        return cls()


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path


def configure_logging(level: str) -> None:
    """Configure root logging once for CLI and server runs."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
