"""Configuration management for Brainrot Generator.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the BRAINROT_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (BRAINROT_* prefix)
2. .env file in the project root
3. Default values defined in BrainrotConfig

Example .env file:
    BRAINROT_GENERATOR_API_KEY=my-fal-key
    BRAINROT_DATA_DIR=data
    BRAINROT_QUOTA_STORE_URL=https://quota.example.com
    BRAINROT_QUOTA_POLL_INTERVAL=15

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
Only the application boundary (``brainrot.api.main``) reads it; every other
component receives the values it needs through its constructor.

Directory Management
--------------------
The configuration automatically creates required directories on initialization:
- data_dir: Holds the persisted gallery index
- images_dir: One PNG file per generated image
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BrainrotConfig(BaseSettings):
    """Main configuration for Brainrot Generator.

    Attributes
    ----------
    Remote Generator:
        generator_endpoint : str
            URL that receives the ``POST {prompt, negative_prompt}`` request
        generator_api_key : str
            API key sent in the ``Authorization`` header
        request_timeout : float
            Timeout in seconds for generator and download calls

    Local Storage:
        data_dir : Path
            Directory holding the gallery index file
        images_dir_name : str
            Name of the image directory inside data_dir
        index_filename : str
            Name of the JSON index file inside data_dir

    Usage Quota:
        quota_store_url : str | None
            Base URL of the remote quota document store. ``None`` means no
            remote store is reachable and the ledger runs in local-only mode.
        quota_store_token : str | None
            Optional bearer token for the quota store
        quota_poll_interval : float
            Seconds between live-subscription polls
        free_tier_credits : int
            Credits granted to a brand new user

    Server:
        server_host : str
        server_port : int
        log_level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BRAINROT_",
        case_sensitive=False,
    )

    # Remote generator
    generator_endpoint: str = Field(
        default="https://fal.run/fal-ai/nano-banana",
        description="Image generation endpoint",
    )
    generator_api_key: str = Field(
        default="",
        description="API key for the image generation endpoint",
    )
    request_timeout: float = Field(
        default=120.0,
        description="Timeout in seconds for outbound generator requests",
        gt=0,
    )

    # Local storage
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for the gallery index and images",
    )
    images_dir_name: str = Field(
        default="GeneratedImages",
        description="Image directory name inside data_dir",
    )
    index_filename: str = Field(
        default="generated_images.json",
        description="Gallery index file name inside data_dir",
    )

    # Usage quota
    quota_store_url: str | None = Field(
        default=None,
        description="Base URL of the remote quota store (None = local-only)",
    )
    quota_store_token: str | None = Field(
        default=None,
        description="Bearer token for the remote quota store",
    )
    quota_poll_interval: float = Field(
        default=15.0,
        description="Seconds between quota document polls",
        ge=1,
    )
    free_tier_credits: int = Field(
        default=1,
        description="Credits granted on the free tier",
        ge=1,
    )

    # Server settings
    server_host: str = Field(
        default="127.0.0.1",
        description="Server bind address",
    )
    server_port: int = Field(
        default=8000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level for the CLI entry point",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.images_dir.mkdir(parents=True, exist_ok=True)

    @property
    def images_dir(self) -> Path:
        """Directory that holds one PNG per gallery entry."""
        return self.data_dir / self.images_dir_name

    @property
    def index_path(self) -> Path:
        """Path of the persisted gallery index."""
        return self.data_dir / self.index_filename


# Global configuration instance
# Loaded from environment variables (BRAINROT_* prefix) and the .env file.
config = BrainrotConfig()
