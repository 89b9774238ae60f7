"""
Configuration management for services.

Secrets and connection settings come from the environment (optionally via a
``.env`` file at the project root). Pipeline tunables live in
``config/pipeline.yaml`` and can be overridden per value with
``PIPELINE_FLAG_<DOTTED_PATH>`` environment variables.
"""

import json
import os
import sys
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


class BulkJobSettings(BaseModel):
    """Tunables of the bulk job pipeline (``bulk_jobs`` section)."""

    poll_interval_seconds: float = Field(default=10.0, ge=0)
    max_poll_checks: int = Field(default=30, ge=1)
    cost_per_string: float = Field(default=0.10, ge=0)
    strings_per_file: int = Field(default=100, ge=1)
    download_base_url: str = "https://downloads.smartling.com/jobs"


def _default_pipeline_path() -> str:
    """Source checkout first, then the copy installed under ``sys.prefix``."""
    candidates = [
        os.path.join(PROJECT_ROOT, "config", "pipeline.yaml"),
        os.path.join(sys.prefix, "config", "pipeline.yaml"),
    ]
    for candidate in candidates:
        if os.path.exists(candidate):
            return candidate
    return candidates[0]


def _parse_origins(raw: str) -> list[str]:
    """Accept either a JSON list or a comma separated string."""
    raw = raw.strip()
    if raw.startswith("["):
        return json.loads(raw)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class ServiceConfig:
    """Configuration management for services using environment variables."""

    def __init__(self) -> None:
        load_dotenv(dotenv_path=os.path.join(PROJECT_ROOT, ".env"), override=True)
        self.config: dict[str, Any] = {}
        self.pipeline_config: dict[str, Any] = {}
        self.pipeline_config_path = os.getenv("PIPELINE_CONFIG_PATH") or _default_pipeline_path()
        self.load_from_env()
        self.load_pipeline_config()

    def load_from_env(self) -> None:
        """Load configuration from environment variables."""
        self.config = {
            "smartling_user_identifier": os.getenv("SMARTLING_USER_IDENTIFIER"),
            "smartling_user_secret": os.getenv("SMARTLING_USER_SECRET"),
            "smartling_base_url": os.getenv("SMARTLING_BASE_URL", "https://api.smartling.com"),
            "smartling_timeout": int(os.getenv("SMARTLING_TIMEOUT", "30")),
            "debug": os.getenv("DEBUG", "false").lower() == "true",
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "allowed_origins": _parse_origins(os.getenv("ALLOWED_ORIGINS", '["*"]')),
        }

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key.

        Args:
            key: Configuration key
            default: Returned when the key is missing or unset

        Returns:
            Configuration value
        """
        value = self.config.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self.config[key] = value

    def reload(self) -> None:
        """Re-read environment variables and the pipeline file."""
        self.load_from_env()
        self.load_pipeline_config()

    def load_pipeline_config(self) -> None:
        """Load pipeline configuration from YAML file. A missing file means defaults."""
        path = os.path.abspath(self.pipeline_config_path)
        try:
            with open(path, "r", encoding="utf-8") as stream:
                data = yaml.safe_load(stream) or {}
        except FileNotFoundError:
            data = {}
        self.pipeline_config = data

    def get_pipeline_value(self, path: str, default: Any = None) -> Any:
        """Retrieve a pipeline configuration value via dotted path."""
        env_override_key = f"PIPELINE_FLAG_{path.replace('.', '_').upper()}"
        env_value = os.getenv(env_override_key)
        if env_value is not None:
            return self._coerce_env_value(env_value, default)

        node: Any = self.pipeline_config
        for part in path.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node if node is not None else default

    def set_pipeline_config(self, pipeline_config: dict[str, Any]) -> None:
        """Override pipeline configuration (useful for tests)."""
        self.pipeline_config = pipeline_config

    def bulk_job_settings(self) -> BulkJobSettings:
        """Validated ``bulk_jobs`` settings, with environment overrides applied."""
        values = {}
        for name in BulkJobSettings.model_fields:
            value = self.get_pipeline_value(f"bulk_jobs.{name}")
            if value is not None:
                values[name] = value
        return BulkJobSettings(**values)

    @staticmethod
    def _coerce_env_value(raw: str, default: Any) -> Any:
        lowered = raw.lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
        if lowered.replace(".", "", 1).isdigit():
            return float(lowered) if "." in lowered else int(lowered)
        return raw or default


# Global configuration instance
config = ServiceConfig()
