"""Factory for creating workflow storage backends."""

import logging

from onchain_workflows.core.config import StorageConfig
from onchain_workflows.storage.base import WorkflowStorage
from onchain_workflows.storage.http_storage import HttpWorkflowStorage
from onchain_workflows.storage.local_storage import LocalWorkflowStorage

logger = logging.getLogger(__name__)


class StorageFactory:
    """Factory for creating storage instances."""

    @staticmethod
    def create(config: StorageConfig) -> WorkflowStorage:
        """Create a storage backend based on configuration.

        Args:
            config: Storage configuration specifying the provider.

        Returns:
            Configured storage instance.

        Raises:
            ValueError: If provider type is not supported.
        """
        logger.info("Creating workflow storage", extra={"provider": config.provider})

        if config.provider == "http":
            if not config.service_url:
                raise ValueError("service_url is required for the http provider")
            return HttpWorkflowStorage(
                config.service_url,
                timeout=config.timeout_seconds,
                retries=config.retries,
                backoff=config.backoff_seconds,
            )
        elif config.provider == "local":
            return LocalWorkflowStorage(config.local_path)
        else:
            raise ValueError(f"Unsupported storage provider: {config.provider}")
