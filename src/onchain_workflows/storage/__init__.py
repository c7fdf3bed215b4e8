"""Workflow document storage backends."""

from onchain_workflows.storage.base import StorageError, WorkflowStorage
from onchain_workflows.storage.http_storage import HttpWorkflowStorage
from onchain_workflows.storage.local_storage import LocalWorkflowStorage

__all__ = [
    "HttpWorkflowStorage",
    "LocalWorkflowStorage",
    "StorageError",
    "WorkflowStorage",
]
