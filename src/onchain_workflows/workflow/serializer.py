"""Convert workflows to and from portable documents.

Serialization authorises every job through the authorization system, one job at a
time, and embeds the resulting session credential in the document. Deserialization
validates the document structure, rebuilds the value types and re-types every
argument from its signature.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .abi import stringify
from .authorization import AuthorizationSystem
from .errors import InvalidBigInt, InvalidSerializedData
from .policy import build_policies
from .schema import (
    CronTriggerDocument,
    EventTriggerDocument,
    JobDocument,
    OnchainTriggerDocument,
    WorkflowDocument,
)
from .types import (
    Account,
    ConditionOperator,
    CronTrigger,
    EventTrigger,
    Job,
    OnchainCondition,
    OnchainTrigger,
    Signer,
    Step,
    Trigger,
    Workflow,
)

if TYPE_CHECKING:
    from onchain_workflows.chains import ChainRegistry

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = "1.0.0"

_INTEGER_TEXT = re.compile(r"^-?\d+$")


def _trigger_to_wire(trigger: Trigger) -> dict[str, Any]:
    if isinstance(trigger, CronTrigger):
        return {"type": trigger.type, "params": {"schedule": trigger.schedule}}

    if isinstance(trigger, EventTrigger):
        params: dict[str, Any] = {
            "signature": trigger.signature,
            "contractAddress": trigger.contract_address,
            "chainId": trigger.chain_id,
        }
        if trigger.filter is not None:
            params["filter"] = {key: stringify(value) for key, value in trigger.filter.items()}
        return {"type": trigger.type, "params": params}

    params = {
        "target": trigger.target,
        "signature": trigger.signature,
        "args": [stringify(arg) for arg in trigger.args],
        "chainId": trigger.chain_id,
    }
    if trigger.value is not None:
        params["value"] = str(trigger.value)
    if trigger.condition is not None:
        params["condition"] = {
            "operator": trigger.condition.operator.name,
            "value": stringify(trigger.condition.value),
        }
    return {"type": trigger.type, "params": params}


def _job_to_wire(job: Job, session: str) -> dict[str, Any]:
    return {
        "id": job.id,
        "chainId": job.chain_id,
        "steps": [
            {
                "target": step.target,
                "signature": step.signature,
                "args": [stringify(arg) for arg in step.args],
                "value": str(step.value or 0),
            }
            for step in job.steps
        ],
        "session": session,
    }


def _document(
    workflow: Workflow, sessions: list[str], *, created_at: datetime
) -> WorkflowDocument:
    body: dict[str, Any] = {
        "owner": workflow.owner.address,
        "triggers": [_trigger_to_wire(trigger) for trigger in workflow.triggers],
        "jobs": [_job_to_wire(job, session) for job, session in zip(workflow.jobs, sessions)],
        "count": workflow.count,
        "interval": workflow.interval,
    }
    if workflow.valid_after is not None:
        body["validAfter"] = int(workflow.valid_after.timestamp())
    if workflow.valid_until is not None:
        body["validUntil"] = int(workflow.valid_until.timestamp())

    return WorkflowDocument.model_validate(
        {
            "workflow": body,
            "metadata": {
                "createdAt": int(created_at.timestamp() * 1000),
                "version": DOCUMENT_VERSION,
            },
        }
    )


def serialize(
    workflow: Workflow,
    *,
    executor_address: str,
    signer: Signer,
    authorization: AuthorizationSystem,
    chains: ChainRegistry,
    is_production: bool = False,
    now: datetime | None = None,
) -> WorkflowDocument:
    """Authorise every job and build the wire document.

    The document is checked against the wire schema before any job is authorised, so a
    workflow that cannot be written out never mints a session. Jobs are authorised
    sequentially because the signer may hold per-chain state.

    Raises:
        InvalidSerializedData: If the workflow does not fit the wire schema.
        UnsupportedChain: If a job targets a chain missing from `chains`.
    """

    typed = workflow.typify()
    created_at = now or datetime.now(tz=UTC)
    try:
        _document(typed, [""] * len(typed.jobs), created_at=created_at)
    except ValidationError as e:
        raise InvalidSerializedData(
            "Workflow cannot be serialized", errors=e.errors(include_url=False)
        ) from e

    registry_address = chains.registry_address(is_production)
    sessions: list[str] = []
    for job in typed.jobs:
        chains.require(job.chain_id)
        policies = build_policies(typed, job, registry_address=registry_address)
        session = authorization.mint(
            chain_id=job.chain_id,
            owner=signer,
            delegate_address=executor_address,
            policies=policies,
        )
        logger.info(
            "Job authorized",
            extra={"job_id": job.id, "chain_id": job.chain_id, "policy_count": len(policies)},
        )
        sessions.append(session)

    return _document(typed, sessions, created_at=created_at)


def _parse_int(text: str, *, field_name: str) -> int:
    if not _INTEGER_TEXT.match(text.strip()):
        raise InvalidBigInt(
            f"Invalid integer value for {field_name}: {text!r}",
            details={"field": field_name, "value": text},
        )
    return int(text.strip(), 10)


def _trigger_from_wire(
    trigger: CronTriggerDocument | EventTriggerDocument | OnchainTriggerDocument,
) -> Trigger:
    if isinstance(trigger, CronTriggerDocument):
        return CronTrigger(schedule=trigger.params.schedule)

    if isinstance(trigger, EventTriggerDocument):
        return EventTrigger(
            signature=trigger.params.signature,
            contract_address=trigger.params.contract_address,
            chain_id=trigger.params.chain_id,
            filter=dict(trigger.params.filter) if trigger.params.filter is not None else None,
        )

    params = trigger.params
    condition = None
    if params.condition is not None:
        condition = OnchainCondition(
            operator=ConditionOperator[params.condition.operator],
            value=params.condition.value,
        )
    return OnchainTrigger(
        target=params.target,
        signature=params.signature,
        chain_id=params.chain_id,
        args=tuple(params.args),
        value=_parse_int(params.value, field_name="trigger value")
        if params.value is not None
        else None,
        condition=condition,
    )


def _job_from_wire(job: JobDocument) -> Job:
    steps = tuple(
        Step(
            target=step.target,
            signature=step.signature,
            args=tuple(step.args),
            value=_parse_int(step.value, field_name=f"job {job.id} step value"),
        )
        for step in job.steps
    )
    return Job(id=job.id, chain_id=job.chain_id, steps=steps, session=job.session)


def _from_epoch(seconds: int | None) -> datetime | None:
    return datetime.fromtimestamp(seconds, tz=UTC) if seconds is not None else None


def deserialize(document: WorkflowDocument | Mapping[str, Any]) -> Workflow:
    """Rebuild a typed workflow from a document or its decoded JSON.

    Raises:
        InvalidSerializedData: If the document does not match the wire schema. The
            error carries every schema violation.
        InvalidBigInt: If a numeric text field is not a base-10 integer.
        InvalidStep: If a step's argument count does not match its signature.
    """

    if isinstance(document, WorkflowDocument):
        parsed = document
    else:
        try:
            parsed = WorkflowDocument.model_validate(document)
        except ValidationError as e:
            raise InvalidSerializedData(
                "Invalid workflow data", errors=e.errors(include_url=False)
            ) from e

    body = parsed.workflow
    workflow = Workflow(
        owner=Account(address=body.owner),
        jobs=tuple(_job_from_wire(job) for job in body.jobs),
        triggers=tuple(_trigger_from_wire(trigger) for trigger in body.triggers),
        count=body.count,
        interval=body.interval,
        valid_after=_from_epoch(body.valid_after),
        valid_until=_from_epoch(body.valid_until),
    )
    return workflow.typify()
