"""Fluent builders for jobs and workflows.

Builders hold private, mutable state and validate every setter eagerly. The only
way out is `build()`, which returns an immutable value or raises.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from .errors import InvalidJob, InvalidStep, InvalidWorkflowField
from .types import (
    Account,
    CronTrigger,
    EventTrigger,
    Job,
    OnchainCondition,
    OnchainTrigger,
    Step,
    Trigger,
    Workflow,
    as_utc,
)

StepLike = Step | Mapping[str, Any]


def _as_step(step: StepLike) -> Step:
    if isinstance(step, Step):
        return step
    if "target" not in step:
        raise InvalidStep("Step target is required")
    return Step(
        target=step["target"],
        signature=step.get("signature", ""),
        args=tuple(step.get("args", ())),
        value=step.get("value") or 0,
    )


def _to_datetime(value: datetime | int | float, *, field_name: str) -> datetime:
    """Normalise a timestamp to an aware UTC datetime with whole seconds.

    Numbers are interpreted as Unix epoch seconds.
    """

    if isinstance(value, bool):
        raise InvalidWorkflowField(f"{field_name} must be a datetime or epoch seconds")
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)):
        return as_utc(datetime.fromtimestamp(value, tz=UTC))
    raise InvalidWorkflowField(f"{field_name} must be a datetime or epoch seconds")


class JobBuilder:
    def __init__(self, job_id: str) -> None:
        self._id = job_id
        self._chain_id = 0
        self._steps: list[Step] = []

    @classmethod
    def create(cls, job_id: str) -> JobBuilder:
        return cls(job_id)

    def set_chain_id(self, chain_id: int) -> JobBuilder:
        self._chain_id = chain_id
        return self

    def add_step(self, step: StepLike) -> JobBuilder:
        """Add a `Step` or a mapping with ``target``, ``signature``, ``args`` and ``value``."""

        self._steps.append(_as_step(step))
        return self

    def add_steps(self, steps: Iterable[StepLike]) -> JobBuilder:
        for step in steps:
            self.add_step(step)
        return self

    def build(self) -> Job:
        if not self._id or not self._id.strip():
            raise InvalidJob("Job id cannot be empty")
        if not self._steps:
            raise InvalidJob("Job must have at least one step")
        if self._chain_id <= 0:
            raise InvalidJob("Chain ID must be greater than 0")
        return Job(id=self._id, chain_id=self._chain_id, steps=tuple(self._steps))


class WorkflowBuilder:
    """Assemble a `Workflow`.

    Example:
        workflow = (
            WorkflowBuilder.create(owner)
            .add_cron_trigger("*/5 * * * *")
            .set_count(3)
            .add_job(JobBuilder.create("mint").set_chain_id(11155111).add_step(step))
            .build()
        )
    """

    def __init__(self, owner: Account | str) -> None:
        self._owner = owner if isinstance(owner, Account) else Account(address=owner)
        self._count: int | None = None
        self._interval: int | None = None
        self._valid_after: datetime | None = None
        self._valid_until: datetime | None = None
        self._triggers: list[Trigger] = []
        self._jobs: list[Job] = []

    @classmethod
    def create(cls, owner: Account | str) -> WorkflowBuilder:
        return cls(owner)

    def set_count(self, count: int) -> WorkflowBuilder:
        if isinstance(count, bool) or not isinstance(count, int):
            raise InvalidWorkflowField("Count must be an integer")
        if count <= 0:
            raise InvalidWorkflowField("Count must be greater than 0")
        self._count = count
        return self

    def set_interval(self, interval: int) -> WorkflowBuilder:
        if isinstance(interval, bool) or not isinstance(interval, int):
            raise InvalidWorkflowField("Interval must be an integer number of seconds")
        if interval <= 0:
            raise InvalidWorkflowField("Interval must be positive")
        self._interval = interval
        return self

    def set_valid_after(self, valid_after: datetime | int | float) -> WorkflowBuilder:
        self._valid_after = _to_datetime(valid_after, field_name="valid_after")
        return self

    def set_valid_until(
        self, valid_until: datetime | int | float, *, now: datetime | None = None
    ) -> WorkflowBuilder:
        value = _to_datetime(valid_until, field_name="valid_until")
        if value <= (now or datetime.now(tz=UTC)):
            raise InvalidWorkflowField("Expiration time must be in the future")
        self._valid_until = value
        return self

    def add_event_trigger(
        self,
        *,
        signature: str,
        contract_address: str,
        chain_id: int,
        filter: dict[str, Any] | None = None,  # noqa: A002 (wire field name)
    ) -> WorkflowBuilder:
        self._triggers.append(
            EventTrigger.create(
                signature=signature,
                contract_address=contract_address,
                chain_id=chain_id,
                filter=filter,
            )
        )
        return self

    def add_cron_trigger(self, schedule: str) -> WorkflowBuilder:
        self._triggers.append(CronTrigger.create(schedule))
        return self

    def add_onchain_trigger(
        self,
        *,
        target: str,
        signature: str,
        chain_id: int,
        args: tuple[Any, ...] | list[Any] = (),
        value: int | None = None,
        condition: OnchainCondition | None = None,
    ) -> WorkflowBuilder:
        self._triggers.append(
            OnchainTrigger.create(
                target=target,
                signature=signature,
                chain_id=chain_id,
                args=args,
                value=value,
                condition=condition,
            )
        )
        return self

    def add_job(self, job: Job | JobBuilder) -> WorkflowBuilder:
        self._jobs.append(job if isinstance(job, Job) else job.build())
        return self

    def add_jobs(self, jobs: Iterable[Job | JobBuilder]) -> WorkflowBuilder:
        for job in jobs:
            self.add_job(job)
        return self

    def build(self) -> Workflow:
        workflow = Workflow(
            owner=self._owner,
            jobs=tuple(self._jobs),
            triggers=tuple(self._triggers),
            count=self._count,
            interval=self._interval,
            valid_after=self._valid_after,
            valid_until=self._valid_until,
        )
        workflow.validate()
        return workflow
