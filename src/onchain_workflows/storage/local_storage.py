"""Storage backed by JSON files in a local directory."""

from __future__ import annotations

import hashlib
import json
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from onchain_workflows.storage.base import StorageError, WorkflowStorage, document_payload
from onchain_workflows.workflow.schema import WorkflowDocument

logger = logging.getLogger(__name__)

_CONTENT_ID_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def content_id_for(payload: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON encoding (sorted keys, no whitespace)."""

    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class LocalWorkflowStorage(WorkflowStorage):
    """Stores each document as ``{content_id}.json`` under `root`."""

    def __init__(self, root: Path) -> None:
        self._root = root

    def _path(self, content_id: str) -> Path:
        if not _CONTENT_ID_PATTERN.match(content_id):
            raise StorageError(f"Invalid content id: {content_id!r}")
        return self._root / f"{content_id}.json"

    def upload(self, document: WorkflowDocument | Mapping[str, Any]) -> str:
        payload = document_payload(document)
        content_id = content_id_for(payload)
        path = self._path(content_id)

        self._root.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

        logger.info(
            "Workflow document stored", extra={"content_id": content_id, "path": str(path)}
        )
        return content_id

    def download(self, content_id: str) -> dict[str, Any]:
        path = self._path(content_id)
        if not path.exists():
            raise StorageError(f"No stored document for content id {content_id}")

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored document {content_id} is not valid JSON") from e
        if not isinstance(data, dict):
            raise StorageError(f"Stored document {content_id} is not a JSON object")
        return data
