"""Configuration module for Photo Circle.

Settings are loaded with pydantic-settings from the environment or from a config
file. The config file is discovered in the following order:

1. the path in the ``PHOTO_CIRCLE_CONFIG_PATH`` environment variable,
2. ``.photocircle`` in the project root,
3. ``.env`` in the project root,
4. no file (environment variables only).

Running from environment variables alone is supported so the service can be
deployed in containers and CI without a config file.

How to extend/maintain:
-----------------------
- Add new config fields to the `Settings` class, and document them.
- If you change the config discovery logic, update this docstring.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
PHOTO_CIRCLE_FILENAME: str = ".photocircle"
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "PHOTO_CIRCLE_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent
CACHE_BACKENDS = ("memory", "redis")


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """Determine the config file path to use, in order of precedence:
    1. Environment variable PHOTO_CIRCLE_CONFIG_PATH
    2. .photocircle in project root
    3. .env in project root
    4. None (fallback to environment variables only)

    Returns:
        Optional[str]: Path to config file, or None if not found.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    config_file: Path = PROJECT_ROOT / PHOTO_CIRCLE_FILENAME
    if config_file.exists():
        return str(config_file)
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=True)


class Settings(BaseSettings):
    """Application settings with environment variable support.
    All fields are loaded from the environment or the .photocircle/.env file.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Server configuration
    APP_NAME: str = "photo-circle"
    ENV: str = "dev"
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    DEBUG: bool = True

    # MongoDB configuration
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "photo_circle"
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[SecretStr] = None

    # Collections
    USERS_COLLECTION: str = "users"
    FRIENDS_COLLECTION: str = "friends"
    FAMILIES_COLLECTION: str = "families"
    FAMILY_REQUESTS_COLLECTION: str = "family_requests"
    NOTIFICATIONS_COLLECTION: str = "notifications"

    # Redis configuration
    # REDIS_URL is the effective URL used by the app. It can be provided directly
    # or will be constructed from host/port/credentials below.
    REDIS_URL: Optional[str] = None
    REDIS_HOST: str = "127.0.0.1"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_USERNAME: Optional[str] = None
    REDIS_PASSWORD: Optional[SecretStr] = None

    # Relationship cache configuration
    CACHE_BACKEND: str = "memory"  # "memory" or "redis"
    CACHE_KEY_PREFIX: str = "photo_circle:rel"
    FRIENDS_CACHE_TTL_SECONDS: int = 2 * 60
    PROFILE_CACHE_TTL_SECONDS: int = 10 * 60
    PROFILE_RESOLVE_BATCH_SIZE: int = 10

    # Relationship protocol behaviour
    RELATIONSHIP_TRANSACTIONS_ENABLED: bool = False  # Only honoured on replica sets / mongos
    NOTIFICATIONS_ENABLED: bool = True

    # Logging configuration
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True
    LOG_DIR: str = "logs"
    LOKI_ENABLED: bool = False
    LOKI_URL: str = "http://localhost:3100/loki/api/v1/push"
    LOKI_COMPRESS: bool = True

    @field_validator(
        "FRIENDS_CACHE_TTL_SECONDS", "PROFILE_CACHE_TTL_SECONDS", "PROFILE_RESOLVE_BATCH_SIZE", mode="before"
    )
    @classmethod
    def validate_positive_integers(cls, v, info):
        """Validate that cache and batching settings are positive."""
        value = int(v)
        if value <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return value

    @field_validator("CACHE_BACKEND", mode="before")
    @classmethod
    def validate_cache_backend(cls, v, info):
        backend = str(v).strip().lower()
        if backend not in CACHE_BACKENDS:
            raise ValueError(f"{info.field_name} must be one of {', '.join(CACHE_BACKENDS)}")
        return backend

    @field_validator("MONGODB_URL", mode="before")
    @classmethod
    def no_empty_urls(cls, v, info):
        if not v or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .photocircle and not empty!")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return not self.DEBUG


# Global settings instance
settings: Settings = Settings()

# Compute effective REDIS_URL if not explicitly provided.
if not settings.REDIS_URL:
    creds = ""
    if settings.REDIS_USERNAME or settings.REDIS_PASSWORD:
        username = settings.REDIS_USERNAME or ""
        password = settings.REDIS_PASSWORD.get_secret_value() if settings.REDIS_PASSWORD else ""
        if username and password:
            creds = f"{username}:{password}@"
        elif password and not username:
            creds = f":{password}@"

    settings.REDIS_URL = f"redis://{creds}{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"
