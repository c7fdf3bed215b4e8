"""Unit tests for workflow document storage."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from onchain_workflows.core.config import StorageConfig
from onchain_workflows.storage.base import StorageError
from onchain_workflows.storage.factory import StorageFactory
from onchain_workflows.storage.http_storage import HttpWorkflowStorage
from onchain_workflows.storage.local_storage import LocalWorkflowStorage, content_id_for
from onchain_workflows.workflow.schema import WorkflowDocument

OWNER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x3333333333333333333333333333333333333333"
SERVICE_URL = "https://automation.example.com/"


@pytest.fixture
def payload() -> dict[str, Any]:
    return {
        "workflow": {
            "owner": OWNER,
            "triggers": [{"type": "cron", "params": {"schedule": "0 0 * * *"}}],
            "jobs": [
                {
                    "id": "ping",
                    "chainId": 1,
                    "steps": [{"target": TOKEN, "signature": "", "args": [], "value": "0"}],
                    "session": "opaque",
                }
            ],
        },
        "metadata": {"createdAt": 1735689600000, "version": "1.0.0"},
    }


def _response(status: int = 200, body: Any = None, text: str | None = None) -> Mock:
    resp = Mock(spec=requests.Response)
    resp.ok = status < 400
    resp.status_code = status
    resp.reason = "OK" if resp.ok else "Bad Gateway"
    resp.json.return_value = body
    resp.text = text if text is not None else json.dumps(body)
    return resp


def _session(*responses: Any) -> Mock:
    session = Mock(spec=requests.Session)
    session.headers = {}
    session.request.side_effect = list(responses)
    return session


class TestLocalWorkflowStorage:
    def test_round_trip(self, tmp_path: Path, payload: dict[str, Any]) -> None:
        storage = LocalWorkflowStorage(tmp_path / "docs")

        content_id = storage.upload(payload)

        assert content_id == content_id_for(payload)
        assert (tmp_path / "docs" / f"{content_id}.json").exists()
        assert storage.download(content_id) == payload

    def test_accepts_document_models(self, tmp_path: Path, payload: dict[str, Any]) -> None:
        storage = LocalWorkflowStorage(tmp_path)

        content_id = storage.upload(WorkflowDocument.model_validate(payload))

        assert storage.download(content_id) == payload

    def test_content_id_ignores_key_order(self, payload: dict[str, Any]) -> None:
        reordered = {"metadata": payload["metadata"], "workflow": payload["workflow"]}

        assert content_id_for(reordered) == content_id_for(payload)

    def test_upload_is_idempotent(self, tmp_path: Path, payload: dict[str, Any]) -> None:
        storage = LocalWorkflowStorage(tmp_path)

        assert storage.upload(payload) == storage.upload(payload)
        assert len(list(tmp_path.glob("*.json"))) == 1

    def test_missing_document(self, tmp_path: Path) -> None:
        with pytest.raises(StorageError):
            LocalWorkflowStorage(tmp_path).download("0" * 64)

    def test_rejects_path_like_content_ids(self, tmp_path: Path) -> None:
        with pytest.raises(StorageError):
            LocalWorkflowStorage(tmp_path).download("../secrets")

    def test_rejects_non_object_documents(self, tmp_path: Path) -> None:
        content_id = "a" * 64
        (tmp_path / f"{content_id}.json").write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(StorageError):
            LocalWorkflowStorage(tmp_path).download(content_id)


class TestHttpWorkflowStorage:
    def test_upload(self, payload: dict[str, Any]) -> None:
        session = _session(_response(body={"cid": "bafy123"}))
        storage = HttpWorkflowStorage(SERVICE_URL, timeout=5, session=session)

        assert storage.upload(payload) == "bafy123"
        session.request.assert_called_once_with(
            "PUT", "https://automation.example.com/ipfs/upload", timeout=5, json=payload
        )

    def test_upload_error_status(self, payload: dict[str, Any]) -> None:
        storage = HttpWorkflowStorage(SERVICE_URL, session=_session(_response(status=502)))

        with pytest.raises(StorageError, match="Upload failed: 502"):
            storage.upload(payload)

    def test_upload_without_cid(self, payload: dict[str, Any]) -> None:
        storage = HttpWorkflowStorage(SERVICE_URL, session=_session(_response(body={})))

        with pytest.raises(StorageError, match="content id"):
            storage.upload(payload)

    def test_download(self, payload: dict[str, Any]) -> None:
        session = _session(_response(text=json.dumps(payload)))
        storage = HttpWorkflowStorage(SERVICE_URL, session=session)

        assert storage.download("bafy123") == payload
        session.request.assert_called_once_with(
            "GET", "https://automation.example.com/ipfs/read/bafy123", timeout=30.0
        )

    def test_download_rejects_non_json(self) -> None:
        storage = HttpWorkflowStorage(SERVICE_URL, session=_session(_response(text="<html>")))

        with pytest.raises(StorageError, match="not valid JSON"):
            storage.download("bafy123")

    def test_download_requires_content_id(self) -> None:
        storage = HttpWorkflowStorage(SERVICE_URL, session=_session())

        with pytest.raises(ValueError):
            storage.download("  ")

    def test_mounts_retrying_adapter(self) -> None:
        session = _session()
        HttpWorkflowStorage(SERVICE_URL, retries=3, backoff=0.25, session=session)

        prefixes = [c.args[0] for c in session.mount.call_args_list]
        assert prefixes == ["http://", "https://"]
        adapter = session.mount.call_args_list[1].args[1]
        assert isinstance(adapter, HTTPAdapter)
        retry = adapter.max_retries
        assert isinstance(retry, Retry)
        assert retry.total == 2
        assert retry.connect == 2
        assert retry.read == 2
        assert retry.backoff_factor == 0.25
        assert "PUT" in retry.allowed_methods
        assert "GET" in retry.allowed_methods

    def test_single_attempt_disables_retries(self) -> None:
        session = _session()
        HttpWorkflowStorage(SERVICE_URL, retries=1, session=session)

        retry = session.mount.call_args_list[0].args[1].max_retries
        assert retry.total == 0

    def test_error_statuses_are_not_retried_by_adapter(self) -> None:
        session = _session()
        HttpWorkflowStorage(SERVICE_URL, session=session)

        retry = session.mount.call_args_list[0].args[1].max_retries
        assert not retry.status_forcelist
        assert retry.raise_on_status is False

    def test_rejects_zero_retries(self) -> None:
        with pytest.raises(ValueError, match="retries"):
            HttpWorkflowStorage(SERVICE_URL, retries=0, session=_session())

    def test_connection_error_becomes_storage_error(self) -> None:
        session = _session(requests.ConnectionError("down"))
        storage = HttpWorkflowStorage(SERVICE_URL, session=session)

        with pytest.raises(StorageError, match="GET .*/ipfs/read/bafy123 failed: down"):
            storage.download("bafy123")
        assert session.request.call_count == 1

    def test_timeout_becomes_storage_error(self, payload: dict[str, Any]) -> None:
        storage = HttpWorkflowStorage(SERVICE_URL, session=_session(requests.Timeout("slow")))

        with pytest.raises(StorageError, match="failed: slow"):
            storage.upload(payload)

    def test_error_status_is_not_retried(self) -> None:
        session = _session(_response(status=502))
        storage = HttpWorkflowStorage(SERVICE_URL, session=session)

        with pytest.raises(StorageError, match="Download failed: 502"):
            storage.download("bafy123")
        assert session.request.call_count == 1


class TestStorageFactory:
    def test_local(self, local_storage_config: StorageConfig) -> None:
        assert isinstance(StorageFactory.create(local_storage_config), LocalWorkflowStorage)

    def test_http(self) -> None:
        config = StorageConfig(provider="http", service_url=SERVICE_URL)

        assert isinstance(StorageFactory.create(config), HttpWorkflowStorage)
