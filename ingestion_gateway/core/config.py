from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"


class PubSubSettings(BaseModel):
    """Broker connection and topic configuration."""

    topic_id: str = Field(
        default="document.ingestion",
        description="Topic that receives one ingestion event per accepted upload.",
    )
    api_endpoint: str | None = Field(
        default=None,
        description="Broker address override (host:port). Defaults to the public Pub/Sub endpoint.",
    )
    credentials_file: Path | None = Field(
        default=None,
        description="Service account key used to authenticate the TLS channel to the broker.",
    )
    publish_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Upper bound on waiting for a publish acknowledgement.",
    )


class StorageSettings(BaseModel):
    """Object store layout and client behaviour."""

    upload_prefix: str = Field(
        default="uploads",
        description="Leading path segment of every stored object.",
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="Timeout applied to the object upload request.",
    )
    api_endpoint: str | None = Field(
        default=None,
        description="Storage endpoint override, e.g. a local emulator.",
    )


class UploadSettings(BaseModel):
    """Limits applied to incoming uploads."""

    max_upload_bytes: int | None = Field(
        default=None,
        gt=0,
        description="Reject uploads larger than this. Unset leaves the limit to the upstream gateway.",
    )


class RemoteFetchSettings(BaseModel):
    """Download behaviour for URL-based ingestion."""

    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout for downloading a remote document.",
    )
    max_bytes: int = Field(
        default=50 * 1024 * 1024,
        gt=0,
        description="Largest remote document accepted.",
    )


class Settings(BaseSettings):
    """Gateway configuration loaded from YAML with environment overrides."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    project_name: str
    api_prefix: str
    host: str = Field(default="0.0.0.0", description="Interface the HTTP server binds to.")
    port: int = Field(default=8080, ge=1, le=65_535, description="Listening port.")
    gcp_project_id: str | None = Field(
        default=None,
        description="Project owning the topic. Falls back to the storage client's project.",
    )
    gcp_bucket_name: str = Field(
        ...,
        min_length=1,
        description="Bucket receiving raw uploads. Startup fails without it.",
    )
    pubsub: PubSubSettings = Field(default_factory=PubSubSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    remote_fetch: RemoteFetchSettings = Field(default_factory=RemoteFetchSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Merge config sources so env/.env override YAML values."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._yaml_config_settings,
            file_secret_settings,
        )

    @staticmethod
    def _yaml_config_settings() -> dict[str, Any]:
        try:
            with CONFIG_PATH.open("r", encoding="utf-8") as file:
                data = yaml.safe_load(file) or {}
        except FileNotFoundError as exc:
            raise RuntimeError(f"Config file not found at {CONFIG_PATH}") from exc
        except yaml.YAMLError as exc:
            raise RuntimeError(f"Failed to parse configuration file {CONFIG_PATH}") from exc

        if not isinstance(data, dict):
            raise RuntimeError(
                f"Invalid configuration format in {CONFIG_PATH}: expected a mapping."
            )

        return data


@lru_cache()
def get_settings() -> Settings:
    """Return cached gateway settings."""
    return Settings()
