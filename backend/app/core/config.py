"""
Configuration Management
Loads settings from environment variables and YAML files
"""
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"
    debug: bool = True

    # API Settings
    api_prefix: str = "/api/v1"
    cors_origins: List[str] = ["http://localhost:3000"]

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""  # admin provisioning only

    # Lead listing
    leads_page_size: int = 20
    max_page_size: int = 100
    fetch_batch_size: int = 1000

    # Query cache
    cache_ttl_seconds: float = 30.0

    # Analytics
    analytics_fallback_days: int = 30

    # Realtime
    realtime_enabled: bool = True
    realtime_channel: str = "leads-changes"
    realtime_tables: List[str] = ["leads"]


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


class ConfigManager:
    """
    Loads tunables from YAML files in backend/config.

    default.yaml is read first, then <environment>.yaml is merged on top.
    String values of the form ${VAR} are replaced with the environment value.
    """

    def __init__(self, env: str = None, config_dir: Path = None):
        self.env = env or os.getenv("ENVIRONMENT", "development")
        self.config_dir = config_dir or Path(__file__).parent.parent.parent / "config"
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        for name in ("default.yaml", f"{self.env}.yaml"):
            path = self.config_dir / name
            if path.exists():
                self._deep_merge(self._config, self._load_yaml(path))

        self._substitute_env_vars(self._config)

    def _load_yaml(self, path: Path) -> Dict:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def _substitute_env_vars(self, config: Dict) -> None:
        for key, value in config.items():
            if isinstance(value, dict):
                self._substitute_env_vars(value)
            elif isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                config[key] = os.getenv(value[2:-1], value)

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: config.get("scoring.priority_weights.High") -> 8
        """
        value = self._config
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value
