"""Submit workflows for automation and run their jobs.

`submit_workflow` is the owner side: validate, authorise and upload. `execute` is the
executor side: restore each job's session and hand its call bundle to an execution
backend. Jobs run concurrently and independently; one failing job never prevents
the others from running or reporting.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import InvalidJob, WorkflowValidationFailed
from .policy import ACCOUNTING_SIGNATURE
from .schema import WorkflowDocument
from .serializer import deserialize, serialize
from .types import Job, Signer, Workflow
from .validator import validate_workflow

if TYPE_CHECKING:
    from onchain_workflows.chains import ChainConfig, ChainRegistry
    from onchain_workflows.storage.base import WorkflowStorage

    from .authorization import AuthorizationSystem

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Call:
    """One call in a job's bundle. Encoding `signature` and `args` is the backend's job."""

    to: str
    value: int
    signature: str
    args: tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class GasEstimate:
    amount: int
    token: str | None = None


@dataclass(frozen=True, slots=True)
class JobOutcome:
    receipt: Any = None
    gas: GasEstimate | None = None


@dataclass(frozen=True, slots=True)
class JobExecutionResult:
    job_id: str
    chain_id: int
    ok: bool
    receipt: Any = None
    gas: GasEstimate | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class WorkflowExecutionResult:
    success: bool
    results: tuple[JobExecutionResult, ...]


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    content_id: str
    document: WorkflowDocument


class ExecutionBackend(ABC):
    """Sends a job's call bundle through a restored account (bundler, paymaster, RPC)."""

    @abstractmethod
    def submit(
        self,
        *,
        job: Job,
        account: Any,
        calls: Sequence[Call],
        chain: ChainConfig,
        simulate: bool,
    ) -> JobOutcome:
        """Submit or, with `simulate`, only estimate one bundle.

        Returns:
            The receipt for a real submission, or a gas estimate for a simulation.
        """
        pass


def accounting_call(*, registry_address: str, content_id: str, job_id: str, nonce: int) -> Call:
    """The proof-of-run call appended to every bundle."""

    return Call(
        to=registry_address,
        value=0,
        signature=ACCOUNTING_SIGNATURE,
        args=(content_id, job_id, nonce),
    )


def prepare_calls(
    job: Job, *, registry_address: str, content_id: str, nonce: int
) -> list[Call]:
    calls = [
        Call(to=step.target, value=step.value or 0, signature=step.signature, args=step.args)
        for step in job.steps
    ]
    calls.append(
        accounting_call(
            registry_address=registry_address, content_id=content_id, job_id=job.id, nonce=nonce
        )
    )
    return calls


def execute_job(
    job: Job,
    *,
    backend: ExecutionBackend,
    authorization: AuthorizationSystem,
    chains: ChainRegistry,
    signer: Signer,
    registry_address: str,
    content_id: str,
    nonce: int,
    simulate: bool = False,
) -> JobOutcome:
    """Run one job.

    Raises:
        InvalidJob: If the job carries no session credential.
        UnsupportedChain: If the job's chain is not configured.
    """

    if not job.session:
        raise InvalidJob(f"Job {job.id} has no session")
    chain = chains.require(job.chain_id)
    account = authorization.restore(chain_id=job.chain_id, credential=job.session, signer=signer)
    calls = prepare_calls(
        job, registry_address=registry_address, content_id=content_id, nonce=nonce
    )
    return backend.submit(job=job, account=account, calls=calls, chain=chain, simulate=simulate)


def execute(
    workflow: Workflow,
    *,
    backend: ExecutionBackend,
    authorization: AuthorizationSystem,
    chains: ChainRegistry,
    signer: Signer,
    content_id: str,
    nonce: int,
    is_production: bool = False,
    simulate: bool = False,
    max_workers: int | None = None,
) -> WorkflowExecutionResult:
    """Run every job of `workflow` concurrently.

    A failure in one job is recorded in its result and does not affect the others.
    `success` is True only when every job succeeded. Results follow job order.
    """

    registry_address = chains.registry_address(is_production)

    def run(job: Job) -> JobExecutionResult:
        try:
            outcome = execute_job(
                job,
                backend=backend,
                authorization=authorization,
                chains=chains,
                signer=signer,
                registry_address=registry_address,
                content_id=content_id,
                nonce=nonce,
                simulate=simulate,
            )
        except Exception as e:
            logger.warning(
                "Job execution failed",
                extra={"job_id": job.id, "chain_id": job.chain_id, "content_id": content_id},
                exc_info=True,
            )
            return JobExecutionResult(job_id=job.id, chain_id=job.chain_id, ok=False, error=str(e))

        logger.info(
            "Job executed",
            extra={
                "job_id": job.id,
                "chain_id": job.chain_id,
                "content_id": content_id,
                "simulate": simulate,
            },
        )
        return JobExecutionResult(
            job_id=job.id,
            chain_id=job.chain_id,
            ok=True,
            receipt=outcome.receipt,
            gas=outcome.gas,
        )

    if not workflow.jobs:
        return WorkflowExecutionResult(success=True, results=())

    workers = max_workers or len(workflow.jobs)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="workflow-job") as pool:
        results = tuple(pool.map(run, workflow.jobs))
    return WorkflowExecutionResult(success=all(r.ok for r in results), results=results)


def execute_from_storage(
    content_id: str,
    *,
    storage: WorkflowStorage,
    backend: ExecutionBackend,
    authorization: AuthorizationSystem,
    chains: ChainRegistry,
    signer: Signer,
    nonce: int,
    is_production: bool = False,
    simulate: bool = False,
) -> WorkflowExecutionResult:
    """Download a workflow document, rebuild the workflow and execute it."""

    document = storage.download(content_id)
    workflow = deserialize(document)
    return execute(
        workflow,
        backend=backend,
        authorization=authorization,
        chains=chains,
        signer=signer,
        content_id=content_id,
        nonce=nonce,
        is_production=is_production,
        simulate=simulate,
    )


def submit_workflow(
    workflow: Workflow,
    *,
    executor_address: str,
    signer: Signer,
    storage: WorkflowStorage,
    authorization: AuthorizationSystem,
    chains: ChainRegistry,
    is_production: bool = False,
) -> SubmissionResult:
    """Validate, authorise and upload a workflow.

    Raises:
        WorkflowValidationFailed: If the workflow does not pass validation. Nothing is
            minted or uploaded in that case.
    """

    report = validate_workflow(workflow, chains=chains)
    if not report.ok:
        raise WorkflowValidationFailed(report)

    document = serialize(
        workflow,
        executor_address=executor_address,
        signer=signer,
        authorization=authorization,
        chains=chains,
        is_production=is_production,
    )
    content_id = storage.upload(document)
    logger.info(
        "Workflow submitted",
        extra={"content_id": content_id, "job_count": len(workflow.jobs)},
    )
    return SubmissionResult(content_id=content_id, document=document)
