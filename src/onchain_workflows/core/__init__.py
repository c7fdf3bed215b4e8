"""Core package initialization."""

from onchain_workflows.core.config import ChainSettings, StorageConfig, WorkflowConfig
from onchain_workflows.core.logging import JsonFormatter, configure_logging

__all__ = [
    "ChainSettings",
    "JsonFormatter",
    "StorageConfig",
    "WorkflowConfig",
    "configure_logging",
]
