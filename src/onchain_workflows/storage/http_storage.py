"""Storage backed by an IPFS upload/read HTTP service."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from onchain_workflows.storage.base import StorageError, WorkflowStorage, document_payload
from onchain_workflows.workflow.schema import WorkflowDocument

logger = logging.getLogger(__name__)


class HttpWorkflowStorage(WorkflowStorage):
    """Uploads with ``PUT {base}/ipfs/upload`` and reads with ``GET {base}/ipfs/read/{cid}``.

    Connection errors and read timeouts are retried by the session adapter with
    exponential backoff. HTTP error responses are not retried.
    """

    def __init__(
        self,
        service_url: str,
        *,
        timeout: float = 30.0,
        retries: int = 3,
        backoff: float = 0.5,
        session: requests.Session | None = None,
    ) -> None:
        if not service_url:
            raise ValueError("service_url is required")
        if retries < 1:
            raise ValueError("retries must be at least 1")

        self._base_url = service_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

        # `retries` counts attempts, urllib3 counts retries after the first one.
        retry_strategy = Retry(
            total=retries - 1,
            connect=retries - 1,
            read=retries - 1,
            status=0,
            backoff_factor=backoff,
            status_forcelist=(),
            allowed_methods=frozenset({"GET", "PUT"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)
        self._session.headers.update({"User-Agent": "onchain-workflows"})

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            return self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning("Storage request failed", extra={"method": method, "url": url})
            raise StorageError(f"{method} {url} failed: {e}") from e

    def upload(self, document: WorkflowDocument | Mapping[str, Any]) -> str:
        url = f"{self._base_url}/ipfs/upload"
        resp = self._send("PUT", url, json=document_payload(document))
        if not resp.ok:
            raise StorageError(f"Upload failed: {resp.status_code} {resp.reason}")

        try:
            data = resp.json()
        except ValueError as e:
            raise StorageError("Upload response is not valid JSON") from e
        cid = data.get("cid") if isinstance(data, dict) else None
        if not isinstance(cid, str) or not cid.strip():
            raise StorageError("Upload response did not include a content id")

        logger.info("Workflow document uploaded", extra={"content_id": cid})
        return cid

    def download(self, content_id: str) -> dict[str, Any]:
        if not content_id.strip():
            raise ValueError("content_id is required")

        url = f"{self._base_url}/ipfs/read/{content_id}"
        resp = self._send("GET", url)
        if not resp.ok:
            raise StorageError(f"Download failed: {resp.status_code} {resp.reason}")

        # The service may answer with application/octet-stream, so decode the text ourselves.
        try:
            data = json.loads(resp.text)
        except json.JSONDecodeError as e:
            raise StorageError("Stored document is not valid JSON") from e
        if not isinstance(data, dict):
            raise StorageError("Stored document is not a JSON object")

        logger.info("Workflow document downloaded", extra={"content_id": content_id})
        return data
