"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

import yaml
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

from riskaudit.analysis.prompts import MASTER_SAFETY_PROMPT

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class ImageStoreConfig(BaseSettings):
    base_dir: str = "data/images"
    fernet_key: str = ""


class ImageDefaultsConfig(BaseSettings):
    """Fallbacks used when an organization has no settings row yet."""

    max_image_width: int = 1920
    image_quality: int = 85
    thumbnail_width: int = 400
    thumbnail_quality: int = 70


class AnalyzerConfig(BaseSettings):
    provider: str = "openai"  # openai | anthropic
    openai_model: str = "gpt-4o"
    anthropic_model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8192
    master_prompt: str = MASTER_SAFETY_PROMPT


class EmailConfig(BaseSettings):
    resend_api_key: str = ""
    from_address: str = "Site Risk Audit <noreply@riskaudit.local>"
    app_url: str = "http://localhost:8000"


class JobsConfig(BaseSettings):
    worker_count: int = 2


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/riskaudit.db"
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    log_level: str = "INFO"
    image_store: ImageStoreConfig = Field(default_factory=ImageStoreConfig)
    image_defaults: ImageDefaultsConfig = Field(default_factory=ImageDefaultsConfig)
    analyzer: AnalyzerConfig = Field(default_factory=AnalyzerConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    jobs: JobsConfig = Field(default_factory=JobsConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    store = ImageStoreConfig(**y.get("image_store", {}))
    defaults = ImageDefaultsConfig(**y.get("image_defaults", {}))
    analyzer = AnalyzerConfig(**y.get("analyzer", {}))
    email = EmailConfig(**y.get("email", {}))
    jobs = JobsConfig(**y.get("jobs", {}))
    db_url = y.get("database", {}).get("url", "sqlite+aiosqlite:///data/riskaudit.db")
    kwargs = {
        "database_url": db_url,
        "image_store": store,
        "image_defaults": defaults,
        "analyzer": analyzer,
        "email": email,
        "jobs": jobs,
    }
    if "log_level" in y:
        kwargs["log_level"] = y["log_level"]
    return Settings(**kwargs)
