"""Abstract base class for workflow document storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from onchain_workflows.workflow.schema import WorkflowDocument


class StorageError(RuntimeError):
    """Raised when a document cannot be stored or retrieved."""


def document_payload(document: WorkflowDocument | Mapping[str, Any]) -> dict[str, Any]:
    """Return the JSON-ready dict for a document or an already-decoded payload."""

    if isinstance(document, WorkflowDocument):
        return document.to_json()
    return dict(document)


class WorkflowStorage(ABC):
    """Content-addressed store for serialized workflows.

    Downloads return the decoded JSON as-is; schema validation happens when the
    workflow is deserialized.
    """

    @abstractmethod
    def upload(self, document: WorkflowDocument | Mapping[str, Any]) -> str:
        """Store a document.

        Args:
            document: Document (or its decoded JSON) to store.

        Returns:
            The content id the document can be downloaded by.
        """
        pass

    @abstractmethod
    def download(self, content_id: str) -> dict[str, Any]:
        """Fetch a stored document.

        Raises:
            StorageError: If the document is missing or is not a JSON object.
        """
        pass
