"""Configuration for storage, chains and logging."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from onchain_workflows.chains import ChainId, ChainRegistry
from onchain_workflows.core.logging import configure_logging


class StorageConfig(BaseSettings):
    """Configuration for workflow document storage."""

    provider: Literal["http", "local"] = Field(
        default="local",
        description="Storage backend to use",
    )

    # HTTP (IPFS gateway) settings
    service_url: str | None = Field(
        default=None,
        description="Base URL of the IPFS upload/read service",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout",
    )
    retries: int = Field(
        default=3,
        ge=1,
        description="Attempts per request before giving up",
    )
    backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Backoff factor for retries; the delay doubles on every retry",
    )

    # Local settings
    local_path: Path = Field(
        default=Path(".workflows"),
        description="Directory for locally stored workflow documents",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_STORAGE_",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_service_url(self) -> StorageConfig:
        if self.provider == "http" and not self.service_url:
            raise ValueError("WORKFLOW_STORAGE_SERVICE_URL is required for the http provider")
        return self


class ChainSettings(BaseSettings):
    """Configuration for the chains a deployment supports."""

    service_url: str | None = Field(
        default=None,
        description="Base URL of the bundler/RPC gateway",
    )
    production: bool = Field(
        default=False,
        description="Use the production workflow registry",
    )
    supported_chain_ids: list[int] = Field(
        default_factory=lambda: [int(chain_id) for chain_id in ChainId],
        description="Chain ids accepted by validation and execution",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_CHAIN_",
        env_file=".env",
        extra="ignore",
    )

    def registry(self) -> ChainRegistry:
        return ChainRegistry.from_chain_ids(self.supported_chain_ids, service_url=self.service_url)


class WorkflowConfig(BaseSettings):
    """Main configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Storage configuration",
    )
    chains: ChainSettings = Field(
        default_factory=ChainSettings,
        description="Chain configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging("DEBUG" if self.debug else self.log_level)
