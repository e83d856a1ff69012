"""
Configuration Management
Loads settings from environment variables and the YAML notification catalog
"""
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# ${VAR} substitution in the YAML catalog reads os.environ
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    environment: str = "development"
    debug: bool = True

    # API Settings
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5500"]

    # Storage
    database_url: str = "sqlite:///./covercredit.db"

    # Admin auth
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"

    # Reminder worker
    reminder_poll_interval_seconds: float = 60.0
    reminder_worker_enabled: bool = True
    shutdown_grace_seconds: float = 30.0

    # Notifications
    brevo_api_key: str = ""
    email_from: str = ""
    email_from_name: str = "Cover Credit"
    email_to: str = ""
    callmebot_api_key: str = ""
    whatsapp_to: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def admin_emails(self) -> List[str]:
        """EMAIL_TO split on commas, blanks dropped."""
        return [e.strip() for e in self.email_to.split(",") if e.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


class ConfigManager:
    """Manages loading and merging configuration from multiple sources"""

    def __init__(self, env: str = "development", config_dir: Path = None):
        self.env = env
        self.config_dir = config_dir or Path(__file__).parent.parent.parent / "config"
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration files in order of precedence"""
        default_path = self.config_dir / "default.yaml"
        if default_path.exists():
            self._config = self._load_yaml(default_path)

        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self._deep_merge(self._config, env_config)

        self._substitute_env_vars(self._config)

    def _load_yaml(self, path: Path) -> Dict:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def _substitute_env_vars(self, config: Dict) -> None:
        """Replace ${VAR_NAME} with environment variable values"""
        for key, value in config.items():
            if isinstance(value, dict):
                self._substitute_env_vars(value)
            elif isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                env_var = value[2:-1]
                config[key] = os.getenv(env_var, value)

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override into base"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: config.get("departments.bike.label") -> "Bike Insurance"
        """
        keys = key_path.split(".")
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def department_meta(self, department: str) -> Dict[str, str]:
        """Display label and icon for a booking department"""
        meta = self.get(f"departments.{department}")
        if not meta:
            return {"label": department, "icon": "📋"}
        return {"label": meta.get("label", department), "icon": meta.get("icon", "📋")}

    def detail_label(self, key: str) -> str:
        """Human label for a booking detail key; unknown camelCase keys are split into words"""
        label = self.get(f"detail_labels.{key}")
        if label:
            return label
        words = re.sub(r"([A-Z])", r" \1", key).strip()
        return words[:1].upper() + words[1:]


@lru_cache()
def get_config_manager() -> ConfigManager:
    return ConfigManager(env=get_settings().environment)
