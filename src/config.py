"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Memory Map configuration. All values come from environment variables."""

    # Mapbox Search Box API (geocoding)
    mapbox_access_token: str = Field(default="")
    mapbox_search_url: str = Field(default="https://api.mapbox.com/search/searchbox/v1")
    geocoding_language: str = Field(default="")
    geocoding_timeout: float = Field(default=10.0)
    suggest_limit: int = Field(default=5)

    # Location search box
    search_debounce_ms: int = Field(default=300)

    # Database
    database_path: Path = Field(default=Path("data/memories.db"))

    # Turso (hosted libSQL): when set, overrides local database_path
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Blob storage for attached images ("local" or "s3")
    blob_backend: str = Field(default="local")
    blob_dir: Path = Field(default=Path("data/blobs"))
    s3_bucket: str = Field(default="")
    aws_region: str = Field(default="eu-west-1")

    # HTTP API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080)
    public_base_url: str = Field(default="http://localhost:8080")
    api_base_url: str = Field(default="http://localhost:8080")
    max_upload_bytes: int = Field(default=10 * 1024 * 1024)

    # Image attachments
    image_max_width: int = Field(default=1200)
    image_max_height: int = Field(default=1200)
    image_quality: int = Field(default=70)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def debounce_seconds(self) -> float:
        return self.search_debounce_ms / 1000

    def missing_required(self) -> list[str]:
        """Return the env var names that must be set but are empty."""
        missing = []
        if not self.mapbox_access_token.strip():
            missing.append("MAPBOX_ACCESS_TOKEN")
        if self.blob_backend == "s3" and not self.s3_bucket.strip():
            missing.append("S3_BUCKET")
        if self.blob_backend not in ("local", "s3"):
            missing.append("BLOB_BACKEND")
        return missing


settings = Settings()
