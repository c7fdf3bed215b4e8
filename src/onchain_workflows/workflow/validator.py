"""Pre-submission and pre-execution checks for workflows.

`validate_workflow` runs every check instead of stopping at the first failure. The
report's status is the category of the first problem found; `errors` lists them all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import IntEnum
from typing import TYPE_CHECKING

from .abi import ZERO_ADDRESS, AbiParseError, is_address, is_plausible, parse_event, parse_function
from .types import EventTrigger, OnchainTrigger, Signer, Step, Workflow, condition_violation

if TYPE_CHECKING:
    from onchain_workflows.chains import ChainRegistry

    from .authorization import AuthorizationSystem

logger = logging.getLogger(__name__)


class ValidatorStatus(IntEnum):
    SUCCESS = 0
    INVALID_OWNER = 1
    INVALID_DATES = 2
    INVALID_COUNT = 3
    INVALID_INTERVAL = 4
    DUPLICATE_CHAIN_ID = 5
    JOB_WITHOUT_SESSION = 6
    UNSUPPORTED_CHAIN_ID = 7
    INVALID_SESSION_POLICY = 8
    INVALID_TRIGGER = 9
    INVALID_STEP = 10

    @property
    def message(self) -> str:
        return _STATUS_MESSAGES[self]


_STATUS_MESSAGES = {
    ValidatorStatus.SUCCESS: "success",
    ValidatorStatus.INVALID_OWNER: "invalid owner address",
    ValidatorStatus.INVALID_DATES: "invalid validity dates",
    ValidatorStatus.INVALID_COUNT: "invalid count value",
    ValidatorStatus.INVALID_INTERVAL: "invalid interval value",
    ValidatorStatus.DUPLICATE_CHAIN_ID: "duplicate chain id in jobs",
    ValidatorStatus.JOB_WITHOUT_SESSION: "job without session key",
    ValidatorStatus.UNSUPPORTED_CHAIN_ID: "unsupported chain id",
    ValidatorStatus.INVALID_SESSION_POLICY: "session policies mismatch",
    ValidatorStatus.INVALID_TRIGGER: "invalid trigger specification",
    ValidatorStatus.INVALID_STEP: "invalid step specification",
}


@dataclass(frozen=True, slots=True)
class ValidationReport:
    status: ValidatorStatus
    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status is ValidatorStatus.SUCCESS


class _Collector:
    def __init__(self) -> None:
        self.statuses: list[ValidatorStatus] = []
        self.errors: list[str] = []

    def add(self, status: ValidatorStatus, error: str) -> None:
        if status not in self.statuses:
            self.statuses.append(status)
        self.errors.append(error)

    def report(self) -> ValidationReport:
        if not self.errors:
            return ValidationReport(status=ValidatorStatus.SUCCESS)
        return ValidationReport(status=self.statuses[0], errors=tuple(self.errors))


def _step_problem(step: Step, job_id: str) -> str | None:
    if step.value is not None and step.value < 0:
        return f"negative value in step of job {job_id}"
    if not step.signature.strip():
        return None
    try:
        abi_function = parse_function(step.signature)
    except AbiParseError:
        return f"invalid abi or args in step of job {job_id}"
    if len(abi_function.inputs) != len(step.args):
        return f"invalid abi or args in step of job {job_id}"
    for param, arg in zip(abi_function.inputs, step.args, strict=True):
        if not is_plausible(arg, param.type):
            return f"invalid abi or args in step of job {job_id}"
    return None


def _onchain_trigger_ok(trigger: OnchainTrigger) -> bool:
    try:
        abi_function = parse_function(trigger.signature)
    except AbiParseError:
        return False
    if len(abi_function.inputs) != len(trigger.args):
        return False
    if not all(
        is_plausible(arg, param.type)
        for param, arg in zip(abi_function.inputs, trigger.args, strict=True)
    ):
        return False
    if trigger.condition is None:
        return True
    return condition_violation(trigger.signature, trigger.condition) is None


def validate_workflow(
    workflow: Workflow,
    *,
    chains: ChainRegistry,
    authorization: AuthorizationSystem | None = None,
    signer: Signer | None = None,
    check_sessions: bool = False,
    now: datetime | None = None,
) -> ValidationReport:
    """Run the full battery of checks against `workflow`.

    Args:
        workflow: Workflow to check.
        chains: Chains the deployment supports.
        authorization: Used to restore session credentials when `check_sessions` is set.
        signer: Executor signer handed to `authorization.restore`.
        check_sessions: Require every job to carry a credential that can be restored.
        now: Reference time for the expiry check; defaults to the current UTC time.

    Returns:
        A report with the first failing category and every error message.
    """

    if check_sessions and (authorization is None or signer is None):
        raise ValueError("check_sessions requires an authorization system and a signer")

    now = now or datetime.now(tz=UTC)
    found = _Collector()

    owner = workflow.owner.address if workflow.owner is not None else ""
    if not owner or owner.lower() == ZERO_ADDRESS:
        found.add(ValidatorStatus.INVALID_OWNER, "owner is zero address")

    if workflow.valid_after is not None and workflow.valid_until is not None:
        if workflow.valid_after >= workflow.valid_until:
            found.add(ValidatorStatus.INVALID_DATES, "validAfter must be before validUntil")
    if workflow.valid_until is not None and workflow.valid_until <= now:
        found.add(ValidatorStatus.INVALID_DATES, "validUntil must be in the future")

    if workflow.count is not None and workflow.count <= 0:
        found.add(ValidatorStatus.INVALID_COUNT, "count must be positive")
    if workflow.interval is not None and workflow.interval <= 0:
        found.add(ValidatorStatus.INVALID_INTERVAL, "interval must be positive")

    seen_chains: set[int] = set()
    for job in workflow.jobs:
        if job.chain_id in seen_chains:
            found.add(ValidatorStatus.DUPLICATE_CHAIN_ID, f"duplicate chainId {job.chain_id}")
        else:
            seen_chains.add(job.chain_id)

    for job in workflow.jobs:
        supported = job.chain_id in chains
        if check_sessions and not job.session:
            found.add(ValidatorStatus.JOB_WITHOUT_SESSION, f"job {job.id} has no session")
        if check_sessions and job.session and supported:
            assert authorization is not None and signer is not None
            try:
                authorization.restore(chain_id=job.chain_id, credential=job.session, signer=signer)
            except Exception:
                logger.debug("Session restore failed", extra={"job_id": job.id}, exc_info=True)
                found.add(
                    ValidatorStatus.INVALID_SESSION_POLICY,
                    f"cannot deserialize session for job {job.id}",
                )
        if not supported:
            found.add(ValidatorStatus.UNSUPPORTED_CHAIN_ID, f"unsupported chain {job.chain_id}")
        # One error per job is enough to reject it.
        for step in job.steps:
            problem = _step_problem(step, job.id)
            if problem is not None:
                found.add(ValidatorStatus.INVALID_STEP, problem)
                break

    for trigger in workflow.triggers:
        if isinstance(trigger, EventTrigger):
            try:
                parse_event(trigger.signature)
            except AbiParseError:
                found.add(ValidatorStatus.INVALID_TRIGGER, "invalid event trigger signature")
            if not is_address(trigger.contract_address):
                found.add(ValidatorStatus.INVALID_TRIGGER, "invalid contract address in trigger")
        elif isinstance(trigger, OnchainTrigger):
            if not is_address(trigger.target):
                found.add(
                    ValidatorStatus.INVALID_TRIGGER, "invalid target address in onchain trigger"
                )
            if not _onchain_trigger_ok(trigger):
                found.add(
                    ValidatorStatus.INVALID_TRIGGER,
                    "invalid abi, args, or onchainCondition in onchain trigger",
                )
            if trigger.chain_id not in chains:
                found.add(
                    ValidatorStatus.UNSUPPORTED_CHAIN_ID,
                    f"unsupported chain {trigger.chain_id} in onchain trigger",
                )
            if trigger.value is not None and trigger.value < 0:
                found.add(ValidatorStatus.INVALID_TRIGGER, "negative value in onchain trigger")

    report = found.report()
    if not report.ok:
        logger.info(
            "Workflow failed validation",
            extra={"status": report.status.name, "errors": list(report.errors)},
        )
    return report
