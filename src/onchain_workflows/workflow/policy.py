"""Derive the policy scope a delegated signer needs to run one job.

A job is authorised by a call policy (one permission per distinct contract call,
plus the proof-of-run call on the workflow registry) and, optionally, a rate
limit and a validity window taken from the workflow.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .abi import AbiFunction, parse_function, to_jsonable
from .types import ConditionOperator, Job, Step, Workflow

logger = logging.getLogger(__name__)

ACCOUNTING_SIGNATURE = "markRunWithMetadata(string ipfsHash, string jobId, uint256 nonce)"
CALL_POLICY_VERSION = "0.0.4"


@dataclass(frozen=True, slots=True)
class ArgRestriction:
    condition: ConditionOperator
    value: Any

    def to_json(self) -> dict[str, Any]:
        return {"condition": self.condition.name, "value": to_jsonable(self.value)}


@dataclass(frozen=True, slots=True)
class Permission:
    """Allows calls to `function_name` on `target`, with per-argument restrictions.

    A None entry in `args` leaves that argument unconstrained. A permission with no
    `function_abi` covers plain value transfers.
    """

    target: str
    value_limit: int
    function_abi: AbiFunction | None
    function_name: str
    args: tuple[ArgRestriction | None, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))

    @property
    def abi_shape(self) -> str:
        if self.function_abi is None:
            return ""
        return f"{self.function_abi.name}({','.join(self.function_abi.input_types)})"

    def to_json(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "valueLimit": str(self.value_limit),
            "abi": [self.function_abi.to_json()] if self.function_abi is not None else [],
            "functionName": self.function_name,
            "args": [arg.to_json() if arg is not None else None for arg in self.args],
        }


@dataclass(frozen=True, slots=True)
class CallPolicy:
    permissions: tuple[Permission, ...]
    version: str = CALL_POLICY_VERSION

    def to_json(self) -> dict[str, Any]:
        return {
            "type": "call",
            "policyVersion": self.version,
            "permissions": [p.to_json() for p in self.permissions],
        }


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    count: int
    interval: int | None = None

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": "rate-limit", "count": self.count}
        if self.interval is not None:
            out["interval"] = self.interval
        return out


@dataclass(frozen=True, slots=True)
class TimestampPolicy:
    """Validity window in Unix epoch seconds; either bound may be open."""

    valid_after: int | None = None
    valid_until: int | None = None

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": "timestamp"}
        if self.valid_after is not None:
            out["validAfter"] = self.valid_after
        if self.valid_until is not None:
            out["validUntil"] = self.valid_until
        return out


Policy = CallPolicy | RateLimitPolicy | TimestampPolicy


def step_permission(step: Step) -> Permission:
    abi_function = step.abi()
    if abi_function is None:
        return Permission(
            target=step.target,
            value_limit=step.value or 0,
            function_abi=None,
            function_name="",
        )

    args: list[ArgRestriction | None] = []
    for param, arg in zip(abi_function.inputs, step.args, strict=True):
        if param.type == "string" or arg is None:
            args.append(None)
        else:
            args.append(ArgRestriction(condition=ConditionOperator.EQUAL, value=arg))
    return Permission(
        target=step.target,
        value_limit=step.value or 0,
        function_abi=abi_function,
        function_name=abi_function.name,
        args=tuple(args),
    )


def accounting_permission(registry_address: str) -> Permission:
    """The proof-of-run call every job makes on the workflow registry."""

    abi_function = parse_function(ACCOUNTING_SIGNATURE)
    return Permission(
        target=registry_address,
        value_limit=0,
        function_abi=abi_function,
        function_name=abi_function.name,
        args=(None,) * len(abi_function.inputs),
    )


def _distinct(values: list[Any]) -> list[Any]:
    # Literals may be lists (array arguments), so no hashing.
    out: list[Any] = []
    for value in values:
        if value not in out:
            out.append(value)
    return out


def _merge_group(group: list[Permission]) -> list[Permission]:
    arity = len(group[0].args)
    if any(len(p.args) != arity for p in group):
        return group

    merged_args: list[ArgRestriction | None] = []
    for position in range(arity):
        column = [p.args[position] for p in group]
        if all(r is None for r in column):
            merged_args.append(None)
            continue
        if not all(r is not None and r.condition is ConditionOperator.EQUAL for r in column):
            return group
        values = _distinct([r.value for r in column if r is not None])
        logger.debug(
            "Merged argument restrictions into ONE_OF",
            extra={
                "target": group[0].target,
                "function_name": group[0].function_name,
                "position": position,
                "values": to_jsonable(values),
            },
        )
        merged_args.append(ArgRestriction(condition=ConditionOperator.ONE_OF, value=tuple(values)))

    first = group[0]
    return [
        Permission(
            target=first.target,
            value_limit=max(p.value_limit for p in group),
            function_abi=first.function_abi,
            function_name=first.function_name,
            args=tuple(merged_args),
        )
    ]


def merge_permissions(permissions: Sequence[Permission]) -> list[Permission]:
    """Collapse permissions that differ only in their EQUAL-pinned literals.

    Permissions are grouped by target, function name and ABI shape, in order of first
    appearance. Within a group every argument position must be either unconstrained
    in all members or EQUAL in all members; otherwise (or when arities differ) the
    group is returned untouched.
    """

    groups: dict[tuple[str, str, str], list[Permission]] = {}
    for permission in permissions:
        key = (permission.target.lower(), permission.function_name, permission.abi_shape)
        groups.setdefault(key, []).append(permission)

    merged: list[Permission] = []
    for group in groups.values():
        if len(group) == 1:
            merged.extend(group)
        else:
            merged.extend(_merge_group(group))
    return merged


def build_policies(workflow: Workflow, job: Job, *, registry_address: str) -> list[Policy]:
    permissions = [step_permission(step) for step in job.steps]
    permissions.append(accounting_permission(registry_address))

    policies: list[Policy] = [CallPolicy(permissions=tuple(merge_permissions(permissions)))]
    if workflow.count is not None and workflow.count > 0:
        interval = workflow.interval if workflow.interval and workflow.interval > 0 else None
        policies.append(RateLimitPolicy(count=workflow.count, interval=interval))
    if workflow.valid_after is not None or workflow.valid_until is not None:
        policies.append(
            TimestampPolicy(
                valid_after=int(workflow.valid_after.timestamp())
                if workflow.valid_after is not None
                else None,
                valid_until=int(workflow.valid_until.timestamp())
                if workflow.valid_until is not None
                else None,
            )
        )
    return policies


def policies_to_json(policies: Sequence[Policy]) -> list[dict[str, Any]]:
    return [policy.to_json() for policy in policies]
