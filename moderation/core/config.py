"""Configuration for the moderation service.

Runtime settings come from the environment (or ``.env``) through
pydantic-settings. The optional role policy file is YAML.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_name: str = "Moderation Queue"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./moderation.db"

    # Authorization
    admin_role: str = "admin"
    roles_file: Optional[str] = None

    # Queue behaviour
    decide_max_attempts: int = 2  # first try plus one retry after a lost race
    # 0 scans the store on every stats read. A positive TTL caches counts
    # per process: other workers and direct database writes may then show
    # stale counts for up to the TTL.
    stats_cache_ttl_seconds: float = 0.0

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    file_logging: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def load_config(config_path: str) -> Dict[str, Any]:
    """Load a YAML configuration file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary with environment variables expanded

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj
