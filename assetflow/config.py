import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env early so env vars are available for YAML interpolation
_env_file = Path(__file__).parent.parent / ".env"
load_dotenv(_env_file)

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ValueError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def get_config_path() -> Path:
    """Return the app.yaml path, overridable with ASSETFLOW_CONFIG."""
    override = os.environ.get("ASSETFLOW_CONFIG")
    if override:
        return Path(override)
    return Path.cwd() / "app.yaml"


def load_app_config() -> dict:
    """Load and parse app.yaml with environment variable interpolation."""
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"app.yaml not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite+aiosqlite:///./assetflow.db"
    echo: bool = False


class EngineConfig(BaseModel):
    """Approval engine policy knobs."""

    # A carousel needs at least this many items when created
    min_carousel_children: int = Field(default=1, ge=1)
    # What happens to a carousel whose last item is deleted
    empty_carousel_policy: Literal["keep", "delete"] = "keep"


class StorageConfig(BaseModel):
    """Local file storage used when no external store is wired in."""

    local_path: str = "./storage"
    store_name: str = "default"


class LogfireConfig(BaseModel):
    """Optional Logfire tracing."""

    enabled: bool = False
    service_name: str = "assetflow"
    environment: str | None = None
    console: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ASSETFLOW_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    debug: bool = False
    log_level: str = "INFO"

    db: DatabaseConfig = DatabaseConfig()
    engine: EngineConfig = EngineConfig()
    storage: StorageConfig = StorageConfig()
    logfire: LogfireConfig = LogfireConfig()


_SECTIONS = {
    "db": DatabaseConfig,
    "engine": EngineConfig,
    "storage": StorageConfig,
    "logfire": LogfireConfig,
}


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment and app.yaml."""
    base_settings = Settings()

    try:
        app_config = load_app_config()
    except FileNotFoundError:
        return base_settings

    updates = {}
    for key, model in _SECTIONS.items():
        if key in app_config:
            updates[key] = model(**app_config[key])
    for key in ("debug", "log_level"):
        if key in app_config:
            updates[key] = app_config[key]

    if updates:
        return base_settings.model_copy(update=updates)

    return base_settings


def clear_settings_cache() -> None:
    """Forget cached settings so the next call re-reads configuration."""
    get_settings.cache_clear()
