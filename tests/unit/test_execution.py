"""Unit tests for workflow submission and execution."""

from __future__ import annotations

import dataclasses
from unittest.mock import Mock

import pytest

from onchain_workflows.chains import TESTING_REGISTRY_ADDRESS, ChainRegistry
from onchain_workflows.storage.base import WorkflowStorage
from onchain_workflows.workflow.authorization import AuthorizationSystem
from onchain_workflows.workflow.errors import WorkflowValidationFailed
from onchain_workflows.workflow.execution import (
    Call,
    ExecutionBackend,
    GasEstimate,
    JobOutcome,
    SubmissionResult,
    WorkflowExecutionResult,
    accounting_call,
    execute,
    execute_from_storage,
    prepare_calls,
    submit_workflow,
)
from onchain_workflows.workflow.policy import ACCOUNTING_SIGNATURE
from onchain_workflows.workflow.schema import WorkflowDocument
from onchain_workflows.workflow.types import Account, Job, Step, Workflow
from onchain_workflows.workflow.validator import ValidatorStatus

OWNER = "0x1111111111111111111111111111111111111111"
EXECUTOR = "0x2222222222222222222222222222222222222222"
TOKEN = "0x3333333333333333333333333333333333333333"
RECIPIENT = "0x4444444444444444444444444444444444444444"
CONTENT_ID = "bafy-workflow"


def _job(job_id: str, chain_id: int, session: str | None = "credential") -> Job:
    return Job(
        id=job_id,
        chain_id=chain_id,
        steps=(
            Step(target=TOKEN, signature="transfer(address,uint256)", args=(RECIPIENT, 5)),
            Step(target=RECIPIENT, value=7),
        ),
        session=session,
    )


@pytest.fixture
def backend() -> Mock:
    mock = Mock(spec=ExecutionBackend)
    mock.submit.return_value = JobOutcome(receipt={"status": "success"})
    return mock


@pytest.fixture
def executor() -> Account:
    return Account(address=EXECUTOR)


def _execute(
    workflow: Workflow,
    backend: Mock,
    authorization: Mock,
    chains: ChainRegistry,
    signer: Account,
    **kwargs: object,
) -> WorkflowExecutionResult:
    return execute(
        workflow,
        backend=backend,
        authorization=authorization,
        chains=chains,
        signer=signer,
        content_id=CONTENT_ID,
        nonce=4,
        **kwargs,  # type: ignore[arg-type]
    )


def test_accounting_call() -> None:
    call = accounting_call(
        registry_address=TESTING_REGISTRY_ADDRESS, content_id=CONTENT_ID, job_id="a", nonce=9
    )

    assert call == Call(
        to=TESTING_REGISTRY_ADDRESS,
        value=0,
        signature=ACCOUNTING_SIGNATURE,
        args=(CONTENT_ID, "a", 9),
    )


def test_prepare_calls_appends_accounting_call() -> None:
    calls = prepare_calls(
        _job("a", 1), registry_address=TESTING_REGISTRY_ADDRESS, content_id=CONTENT_ID, nonce=2
    )

    assert calls == [
        Call(to=TOKEN, value=0, signature="transfer(address,uint256)", args=(RECIPIENT, 5)),
        Call(to=RECIPIENT, value=7, signature=""),
        Call(
            to=TESTING_REGISTRY_ADDRESS,
            value=0,
            signature=ACCOUNTING_SIGNATURE,
            args=(CONTENT_ID, "a", 2),
        ),
    ]


def test_execute_runs_every_job(
    backend: Mock, authorization: Mock, chains: ChainRegistry, executor: Account
) -> None:
    authorization.restore.side_effect = lambda *, chain_id, **_: f"account-{chain_id}"
    workflow = Workflow(owner=Account(address=OWNER), jobs=(_job("a", 1), _job("b", 137)))

    result = _execute(workflow, backend, authorization, chains, executor)

    assert result.success
    assert [(r.job_id, r.chain_id, r.ok) for r in result.results] == [
        ("a", 1, True),
        ("b", 137, True),
    ]
    assert result.results[0].receipt == {"status": "success"}
    submitted = {c.kwargs["job"].id: c.kwargs for c in backend.submit.call_args_list}
    assert submitted["b"]["account"] == "account-137"
    assert submitted["b"]["chain"] == chains.require(137)
    assert submitted["b"]["calls"][-1].args == (CONTENT_ID, "b", 4)
    assert submitted["b"]["simulate"] is False


def test_execute_isolates_failing_jobs(
    backend: Mock, authorization: Mock, chains: ChainRegistry, executor: Account
) -> None:
    def submit(*, job: Job, **_: object) -> JobOutcome:
        if job.id == "a":
            raise RuntimeError("bundler rejected the operation")
        return JobOutcome(receipt="0xreceipt")

    backend.submit.side_effect = submit
    workflow = Workflow(owner=Account(address=OWNER), jobs=(_job("a", 1), _job("b", 137)))

    result = _execute(workflow, backend, authorization, chains, executor)

    assert not result.success
    first, second = result.results
    assert first.ok is False
    assert first.error == "bundler rejected the operation"
    assert second.ok is True
    assert second.receipt == "0xreceipt"


def test_execute_reports_job_without_session(
    backend: Mock, authorization: Mock, chains: ChainRegistry, executor: Account
) -> None:
    workflow = Workflow(
        owner=Account(address=OWNER), jobs=(_job("a", 1, session=None), _job("b", 137))
    )

    result = _execute(workflow, backend, authorization, chains, executor)

    assert not result.success
    assert result.results[0].error == "Job a has no session"
    assert result.results[1].ok
    backend.submit.assert_called_once()


def test_execute_reports_unsupported_chain(
    backend: Mock, authorization: Mock, chains: ChainRegistry, executor: Account
) -> None:
    workflow = Workflow(owner=Account(address=OWNER), jobs=(_job("a", 999),))

    result = _execute(workflow, backend, authorization, chains, executor)

    assert not result.success
    assert result.results[0].error == "Unsupported chain ID: 999"
    authorization.restore.assert_not_called()


def test_execute_reports_restore_failure(
    backend: Mock, authorization: Mock, chains: ChainRegistry, executor: Account
) -> None:
    authorization.restore.side_effect = ValueError("credential was minted for another signer")
    workflow = Workflow(owner=Account(address=OWNER), jobs=(_job("a", 1),))

    result = _execute(workflow, backend, authorization, chains, executor)

    assert result.results[0].error == "credential was minted for another signer"
    backend.submit.assert_not_called()


def test_simulation_returns_gas_estimates(
    backend: Mock, authorization: Mock, chains: ChainRegistry, executor: Account
) -> None:
    backend.submit.return_value = JobOutcome(gas=GasEstimate(amount=21000, token="USDC"))
    workflow = Workflow(owner=Account(address=OWNER), jobs=(_job("a", 1),))

    result = _execute(workflow, backend, authorization, chains, executor, simulate=True)

    assert result.results[0].gas == GasEstimate(amount=21000, token="USDC")
    assert result.results[0].receipt is None
    assert backend.submit.call_args.kwargs["simulate"] is True


def test_execute_with_no_jobs(
    backend: Mock, authorization: Mock, chains: ChainRegistry, executor: Account
) -> None:
    workflow = Workflow(owner=Account(address=OWNER), jobs=())

    result = _execute(workflow, backend, authorization, chains, executor)

    assert result.success
    assert result.results == ()


def test_submit_workflow_uploads_document(
    cron_workflow: Workflow, authorization: Mock, chains: ChainRegistry
) -> None:
    storage = Mock(spec=WorkflowStorage)
    storage.upload.return_value = CONTENT_ID

    result = submit_workflow(
        cron_workflow,
        executor_address=EXECUTOR,
        signer=Account(address=OWNER),
        storage=storage,
        authorization=authorization,
        chains=chains,
    )

    assert isinstance(result, SubmissionResult)
    assert result.content_id == CONTENT_ID
    document = storage.upload.call_args.args[0]
    assert isinstance(document, WorkflowDocument)
    assert document is result.document
    assert document.workflow.jobs[0].session == "session-11155111"


def test_submit_workflow_rejects_invalid_workflow(
    cron_workflow: Workflow, authorization: Mock, chains: ChainRegistry
) -> None:
    storage = Mock(spec=WorkflowStorage)
    workflow = dataclasses.replace(cron_workflow, count=0)

    with pytest.raises(WorkflowValidationFailed) as excinfo:
        submit_workflow(
            workflow,
            executor_address=EXECUTOR,
            signer=Account(address=OWNER),
            storage=storage,
            authorization=authorization,
            chains=chains,
        )

    assert excinfo.value.report.status is ValidatorStatus.INVALID_COUNT
    assert excinfo.value.details == ("count must be positive",)
    authorization.mint.assert_not_called()
    storage.upload.assert_not_called()


def test_execute_from_storage(
    cron_workflow: Workflow,
    backend: Mock,
    authorization: Mock,
    chains: ChainRegistry,
    executor: Account,
) -> None:
    storage = Mock(spec=WorkflowStorage)
    storage.upload.return_value = CONTENT_ID
    submission = submit_workflow(
        cron_workflow,
        executor_address=EXECUTOR,
        signer=Account(address=OWNER),
        storage=storage,
        authorization=authorization,
        chains=chains,
    )
    storage.download.return_value = submission.document.to_json()

    result = execute_from_storage(
        CONTENT_ID,
        storage=storage,
        backend=backend,
        authorization=authorization,
        chains=chains,
        signer=executor,
        nonce=1,
    )

    assert result.success
    storage.download.assert_called_once_with(CONTENT_ID)
    authorization.restore.assert_called_once_with(
        chain_id=11155111, credential="session-11155111", signer=executor
    )
    calls = backend.submit.call_args.kwargs["calls"]
    assert calls[0].args == (RECIPIENT, 1000)
    assert calls[-1].args == (CONTENT_ID, "transfer", 1)
