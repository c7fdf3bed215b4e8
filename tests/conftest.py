"""Test configuration and fixtures."""

from pathlib import Path
from unittest.mock import Mock

import pytest

from onchain_workflows.chains import ChainRegistry
from onchain_workflows.core.config import StorageConfig
from onchain_workflows.workflow.authorization import AuthorizationSystem
from onchain_workflows.workflow.builders import JobBuilder, WorkflowBuilder
from onchain_workflows.workflow.types import Account, Step, Workflow

OWNER = "0x1111111111111111111111111111111111111111"
EXECUTOR = "0x2222222222222222222222222222222222222222"
TOKEN = "0x3333333333333333333333333333333333333333"
RECIPIENT = "0x4444444444444444444444444444444444444444"
FEED = "0x5555555555555555555555555555555555555555"

SEPOLIA = 11155111
POLYGON = 137


@pytest.fixture
def chains() -> ChainRegistry:
    """Provide a registry with a few supported chains and no RPC endpoints."""
    return ChainRegistry.from_chain_ids([1, SEPOLIA, POLYGON])


@pytest.fixture
def owner() -> Account:
    return Account(address=OWNER)


@pytest.fixture
def transfer_step() -> Step:
    return Step(
        target=TOKEN,
        signature="transfer(address to, uint256 amount)",
        args=(RECIPIENT, "1000"),
    )


@pytest.fixture
def cron_workflow(transfer_step: Step) -> Workflow:
    """Provide a valid workflow: cron trigger, count=3, one Sepolia job."""
    return (
        WorkflowBuilder.create(OWNER)
        .add_cron_trigger("*/5 * * * *")
        .set_count(3)
        .add_job(JobBuilder.create("transfer").set_chain_id(SEPOLIA).add_step(transfer_step))
        .build()
    )


@pytest.fixture
def authorization() -> Mock:
    """Provide a mocked authorization system minting predictable credentials."""
    mock = Mock(spec=AuthorizationSystem)
    mock.mint.side_effect = lambda *, chain_id, **_: f"session-{chain_id}"
    return mock


@pytest.fixture
def local_storage_config(tmp_path: Path) -> StorageConfig:
    """Provide a local storage configuration rooted in a temporary directory."""
    return StorageConfig(provider="local", local_path=tmp_path / "workflows")
