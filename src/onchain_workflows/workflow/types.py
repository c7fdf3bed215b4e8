"""Workflow value types: steps, triggers, jobs and the workflow aggregate.

All types are frozen dataclasses. Normalisation (`Workflow.typify`) returns new
values instead of mutating existing ones.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any, ClassVar, Protocol

from .abi import (
    AbiFunction,
    AbiParseError,
    coerce,
    coerce_args,
    coerce_one_of,
    is_address,
    is_integer_type,
    parse_event,
    parse_function,
)
from .errors import InvalidJob, InvalidStep, InvalidTrigger, InvalidWorkflowField


class ConditionOperator(IntEnum):
    """Comparison operators shared by onchain conditions and argument restrictions."""

    EQUAL = 0
    GREATER_THAN = 1
    LESS_THAN = 2
    GREATER_THAN_OR_EQUAL = 3
    LESS_THAN_OR_EQUAL = 4
    NOT_EQUAL = 5
    ONE_OF = 6


NUMERIC_OPERATORS: frozenset[ConditionOperator] = frozenset(
    {
        ConditionOperator.GREATER_THAN,
        ConditionOperator.LESS_THAN,
        ConditionOperator.GREATER_THAN_OR_EQUAL,
        ConditionOperator.LESS_THAN_OR_EQUAL,
    }
)


class Signer(Protocol):
    """Anything that exposes an address; signing itself is the authorization system's job."""

    @property
    def address(self) -> str: ...


@dataclass(frozen=True, slots=True)
class Account:
    """An address-only identity (the workflow owner as seen by the core)."""

    address: str


@dataclass(frozen=True, slots=True)
class Step:
    """A single contract call.

    An empty `signature` describes a plain value transfer to `target`.
    """

    target: str
    signature: str = ""
    args: tuple[Any, ...] = ()
    value: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        if not is_address(self.target):
            raise InvalidStep(f"Invalid target address: {self.target}")
        if not self.signature.strip():
            return
        try:
            abi_function = parse_function(self.signature)
        except AbiParseError as e:
            raise InvalidStep(f"Invalid function signature: {self.signature}") from e
        if len(self.args) != len(abi_function.inputs):
            raise InvalidStep(
                "Arguments length does not match ABI parameter count",
                details={
                    "signature": self.signature,
                    "expected": len(abi_function.inputs),
                    "actual": len(self.args),
                },
            )

    def abi(self) -> AbiFunction | None:
        if not self.signature.strip():
            return None
        return parse_function(self.signature)

    @property
    def function_name(self) -> str:
        abi_function = self.abi()
        return abi_function.name if abi_function is not None else ""

    @property
    def input_types(self) -> tuple[str, ...]:
        abi_function = self.abi()
        return abi_function.input_types if abi_function is not None else ()

    def typify(self) -> Step:
        if not self.input_types:
            return self
        return replace(self, args=coerce_args(self.args, list(self.input_types)))


@dataclass(frozen=True, slots=True)
class CronTrigger:
    schedule: str

    type: ClassVar[str] = "cron"

    @classmethod
    def create(cls, schedule: str) -> CronTrigger:
        if not schedule or not schedule.strip():
            raise InvalidTrigger("Cron schedule cannot be empty")
        return cls(schedule=schedule)


@dataclass(frozen=True, slots=True)
class EventTrigger:
    """Fires on a contract event.

    `filter` maps indexed parameter names to expected values. A None value leaves the
    parameter unconstrained and is dropped, the same as omitting the name.
    """

    signature: str
    contract_address: str
    chain_id: int
    filter: dict[str, Any] | None = None

    type: ClassVar[str] = "event"

    def __post_init__(self) -> None:
        if self.filter is not None:
            object.__setattr__(
                self,
                "filter",
                {name: value for name, value in self.filter.items() if value is not None},
            )

    @classmethod
    def create(
        cls,
        *,
        signature: str,
        contract_address: str,
        chain_id: int,
        filter: dict[str, Any] | None = None,  # noqa: A002 (wire field name)
    ) -> EventTrigger:
        if not signature or not signature.strip():
            raise InvalidTrigger("Event signature cannot be empty")
        if not is_address(contract_address):
            raise InvalidTrigger(f"Invalid contract address: {contract_address}")
        return cls(
            signature=signature,
            contract_address=contract_address,
            chain_id=chain_id,
            filter=dict(filter) if filter is not None else None,
        )

    def typify(self) -> EventTrigger:
        """Coerce filter values with the types of the event parameters they name."""

        if not self.filter:
            return self
        try:
            abi_event = parse_event(self.signature)
        except AbiParseError:
            return self
        types = {param.name: param.type for param in abi_event.inputs if param.name}
        return replace(
            self,
            filter={
                name: coerce(value, types[name]) if name in types else value
                for name, value in self.filter.items()
            },
        )


@dataclass(frozen=True, slots=True)
class OnchainCondition:
    operator: ConditionOperator
    value: Any


def condition_violation(signature: str, condition: OnchainCondition) -> str | None:
    """Explain why `condition` cannot be applied to the return value of `signature`.

    Returns None when the condition is usable.
    """

    try:
        abi_function = parse_function(signature)
    except AbiParseError:
        return f"Invalid function signature: {signature}"
    if condition.value is None:
        return "Onchain condition value is missing"
    if not abi_function.outputs:
        return "ABI must define a return type when using an onchain condition"
    output_type = abi_function.outputs[0].type
    if condition.operator in NUMERIC_OPERATORS and not is_integer_type(output_type):
        return f"Numeric comparison {condition.operator.name} used with return type {output_type}"
    return None


@dataclass(frozen=True, slots=True)
class OnchainTrigger:
    """A read-only call whose first return value is (optionally) checked by a condition."""

    target: str
    signature: str
    chain_id: int
    args: tuple[Any, ...] = ()
    value: int | None = None
    condition: OnchainCondition | None = None

    type: ClassVar[str] = "onchain"

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))

    @classmethod
    def create(
        cls,
        *,
        target: str,
        signature: str,
        chain_id: int,
        args: tuple[Any, ...] | list[Any] = (),
        value: int | None = None,
        condition: OnchainCondition | None = None,
    ) -> OnchainTrigger:
        if not signature or not signature.strip():
            raise InvalidTrigger("Onchain trigger ABI cannot be empty")
        if not target or not target.strip():
            raise InvalidTrigger("Onchain trigger target cannot be empty")
        if not is_address(target):
            raise InvalidTrigger(f"Invalid onchain trigger target: {target}")
        if condition is not None:
            problem = condition_violation(signature, condition)
            if problem is not None:
                raise InvalidTrigger(problem, details={"signature": signature})
        return cls(
            target=target,
            signature=signature,
            chain_id=chain_id,
            args=tuple(args),
            value=value,
            condition=condition,
        )

    def typify(self) -> OnchainTrigger:
        try:
            abi_function = parse_function(self.signature)
        except AbiParseError:
            return self

        args = coerce_args(self.args, list(abi_function.input_types))
        condition = self.condition
        if condition is not None and abi_function.outputs:
            output_type = abi_function.outputs[0].type
            if condition.operator is ConditionOperator.ONE_OF:
                typed_value = coerce_one_of(condition.value, output_type)
            else:
                typed_value = coerce(condition.value, output_type)
            condition = OnchainCondition(operator=condition.operator, value=typed_value)
        return replace(self, args=args, condition=condition)


Trigger = CronTrigger | EventTrigger | OnchainTrigger


@dataclass(frozen=True, slots=True)
class Job:
    """Ordered steps executed on one chain, authorised by one session credential."""

    id: str
    chain_id: int
    steps: tuple[Step, ...] = ()
    session: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))

    def is_empty(self) -> bool:
        return not self.steps

    @property
    def step_count(self) -> int:
        return len(self.steps)


def as_utc(value: datetime) -> datetime:
    """Return `value` as an aware UTC datetime with whole seconds; naive values are UTC."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    # The wire format carries whole seconds.
    return value.astimezone(UTC).replace(microsecond=0)


@dataclass(frozen=True, slots=True)
class Workflow:
    owner: Account
    jobs: tuple[Job, ...]
    triggers: tuple[Trigger, ...] = ()
    count: int | None = None
    interval: int | None = None
    valid_after: datetime | None = None
    valid_until: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "jobs", tuple(self.jobs))
        object.__setattr__(self, "triggers", tuple(self.triggers))
        for name in ("valid_after", "valid_until"):
            value = getattr(self, name)
            if isinstance(value, datetime):
                object.__setattr__(self, name, as_utc(value))

    def validate(self) -> None:
        """Enforce the structural invariants every workflow must satisfy.

        Raises:
            InvalidWorkflowField: If `count` is not positive.
            InvalidJob: If there are no jobs or a job has no steps.
        """

        if self.count is not None and self.count <= 0:
            raise InvalidWorkflowField("Workflow count must be greater than 0")
        if not self.jobs:
            raise InvalidJob("Workflow must have at least one job")
        for job in self.jobs:
            if job.is_empty():
                raise InvalidJob(f"Job {job.id} has no steps")

    def typify(self) -> Workflow:
        """Return a copy whose step arguments and trigger values hold host values."""

        triggers = tuple(
            trigger.typify() if isinstance(trigger, (EventTrigger, OnchainTrigger)) else trigger
            for trigger in self.triggers
        )
        jobs = tuple(
            replace(job, steps=tuple(step.typify() for step in job.steps)) for job in self.jobs
        )
        return replace(self, triggers=triggers, jobs=jobs)

    def get_job_by_id(self, job_id: str) -> Job | None:
        for job in self.jobs:
            if job.id == job_id:
                return job
        return None

    def all_steps(self) -> list[tuple[Job, Step]]:
        return [(job, step) for job in self.jobs for step in job.steps]

    def chain_ids(self) -> list[int]:
        seen: list[int] = []
        for job in self.jobs:
            if job.chain_id and job.chain_id not in seen:
                seen.append(job.chain_id)
        return seen

    def jobs_by_chain(self, chain_id: int) -> list[Job]:
        return [job for job in self.jobs if job.chain_id == chain_id]

    def is_expired(self, *, now: datetime | None = None) -> bool:
        if self.valid_until is None:
            return False
        return (now or datetime.now(tz=UTC)) > self.valid_until
